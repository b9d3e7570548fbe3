from workout_mapper.main import main

if __name__ == "__main__":
    main()

from __future__ import annotations

from typing import TYPE_CHECKING

import gi

from workout_mapper.session import FormSubmitted, ShowAllRequested, WorkoutSelected
from workout_mapper.workouts import WorkoutForm, card_rows

gi.require_versions({"Gtk": "4.0", "Adw": "1"})
from gi.repository import Adw, Gtk  # noqa: E402

if TYPE_CHECKING:
    from workout_mapper.ui import WorkoutMapperApp
    from workout_mapper.workouts import Workout


class _WorkoutCard(Gtk.ListBoxRow):
    def __init__(self, workout: Workout) -> None:
        super().__init__()
        self.workout_id = workout.id
        self.add_css_class(f"workout--{workout.type}")

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=6)
        for m in ("top", "bottom", "start", "end"):
            getattr(box, f"set_margin_{m}")(10)

        title = Gtk.Label(label=workout.description)
        title.add_css_class("heading")
        title.set_xalign(0)
        box.append(title)

        details = Gtk.FlowBox()
        details.set_selection_mode(Gtk.SelectionMode.NONE)
        details.set_max_children_per_line(4)
        details.set_column_spacing(12)
        details.set_can_target(False)  # clicks go to the row
        for icon, value, unit in card_rows(workout):
            cell = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
            cell.append(Gtk.Label(label=icon))
            val = Gtk.Label(label=value)
            val.add_css_class("title-4")
            cell.append(val)
            unit_lbl = Gtk.Label(label=unit)
            unit_lbl.add_css_class("dim-label")
            cell.append(unit_lbl)
            details.insert(cell, -1)
        box.append(details)

        self.set_child(box)


class WorkoutSidebar:
    """Form, workout list and the show-all button. Implements SessionView."""

    def __init__(self, app: WorkoutMapperApp):
        self.app = app
        self._listbox: Gtk.ListBox | None = None
        self.form_group: Adw.PreferencesGroup | None = None
        self.type_combo: Gtk.ComboBoxText | None = None
        self.distance_entry: Gtk.Entry | None = None
        self.duration_entry: Gtk.Entry | None = None
        self.cadence_entry: Gtk.Entry | None = None
        self.elevation_entry: Gtk.Entry | None = None
        self.cadence_row: Adw.ActionRow | None = None
        self.elevation_row: Adw.ActionRow | None = None
        self.show_all_button: Gtk.Button | None = None

    def build_page(self) -> Gtk.Widget:
        outer = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        for m in ("top", "bottom", "start", "end"):
            getattr(outer, f"set_margin_{m}")(12)
        outer.set_size_request(340, -1)

        outer.append(self._build_form())

        scroller = Gtk.ScrolledWindow()
        scroller.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        scroller.set_vexpand(True)
        self._listbox = Gtk.ListBox()
        self._listbox.add_css_class("boxed-list")
        self._listbox.set_selection_mode(Gtk.SelectionMode.NONE)
        self._listbox.set_activate_on_single_click(True)
        self._listbox.connect("row-activated", self._on_row_activated)
        scroller.set_child(self._listbox)
        outer.append(scroller)

        self.show_all_button = Gtk.Button(label="Show all workouts")
        self.show_all_button.add_css_class("suggested-action")
        self.show_all_button.set_visible(False)
        self.show_all_button.connect(
            "clicked", lambda _: self.app.dispatch(ShowAllRequested())
        )
        outer.append(self.show_all_button)

        return outer

    def _entry_row(self, title: str, placeholder: str) -> tuple[Adw.ActionRow, Gtk.Entry]:
        row = Adw.ActionRow()
        row.set_title(title)
        entry = Gtk.Entry()
        entry.set_placeholder_text(placeholder)
        entry.set_input_purpose(Gtk.InputPurpose.NUMBER)
        entry.set_valign(Gtk.Align.CENTER)
        # Enter in any field submits, like an implicit form submit
        entry.connect("activate", self._on_submit)
        row.add_suffix(entry)
        return row, entry

    def _build_form(self) -> Gtk.Widget:
        self.form_group = Adw.PreferencesGroup()
        self.form_group.set_title("New workout")

        type_row = Adw.ActionRow()
        type_row.set_title("Type")
        self.type_combo = Gtk.ComboBoxText()
        self.type_combo.append("running", "Running")
        self.type_combo.append("cycling", "Cycling")
        self.type_combo.set_active_id("running")
        self.type_combo.set_valign(Gtk.Align.CENTER)
        self.type_combo.connect("changed", self._on_type_changed)
        type_row.add_suffix(self.type_combo)
        self.form_group.add(type_row)

        dist_row, self.distance_entry = self._entry_row("Distance", "km")
        dur_row, self.duration_entry = self._entry_row("Duration", "min")
        self.cadence_row, self.cadence_entry = self._entry_row("Cadence", "step/min")
        self.elevation_row, self.elevation_entry = self._entry_row("Elev Gain", "meters")
        self.elevation_row.set_visible(False)
        for row in (dist_row, dur_row, self.cadence_row, self.elevation_row):
            self.form_group.add(row)

        submit = Gtk.Button(label="OK")
        submit.add_css_class("suggested-action")
        submit.set_halign(Gtk.Align.END)
        submit.set_margin_top(6)
        submit.connect("clicked", self._on_submit)
        self.form_group.add(submit)

        self.form_group.set_visible(False)
        return self.form_group

    # ---- Event handlers ----
    def _on_type_changed(self, combo: Gtk.ComboBoxText):
        running = combo.get_active_id() == "running"
        self.cadence_row.set_visible(running)
        self.elevation_row.set_visible(not running)

    def _on_submit(self, *_args):
        form = WorkoutForm(
            type=self.type_combo.get_active_id() or "running",
            distance=self.distance_entry.get_text(),
            duration=self.duration_entry.get_text(),
            cadence=self.cadence_entry.get_text(),
            elevation=self.elevation_entry.get_text(),
        )
        self.app.dispatch(FormSubmitted(form=form))

    def _on_row_activated(self, _listbox: Gtk.ListBox, row: Gtk.ListBoxRow):
        workout_id = getattr(row, "workout_id", None)
        if not workout_id:
            return
        self.app.dispatch(WorkoutSelected(workout_id=workout_id))

    # ---- SessionView ----
    def show_form(self) -> None:
        self.form_group.set_visible(True)
        self.distance_entry.grab_focus()

    def hide_form(self) -> None:
        for entry in (
            self.distance_entry,
            self.duration_entry,
            self.cadence_entry,
            self.elevation_entry,
        ):
            entry.set_text("")
        self.form_group.set_visible(False)

    def render_workout(self, workout: Workout) -> None:
        # Newest first
        self._listbox.prepend(_WorkoutCard(workout))

    def clear_workouts(self) -> None:
        self._listbox.remove_all()

    def set_show_all_visible(self, visible: bool) -> None:
        self.show_all_button.set_visible(visible)

    def set_map_enabled(self, enabled: bool) -> None:
        self.app.map_view.widget.set_sensitive(enabled)

    def alert(self, message: str) -> None:
        self.app.show_alert(message)

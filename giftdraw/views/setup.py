from __future__ import annotations

from flask import Blueprint, render_template, redirect, url_for, flash, request
from flask.views import MethodView

from ..derangement import DrawError
from ..policies import SetupOpenMixin, draw_complete
from ..services.draw import (
    SetupError,
    add_participant,
    list_participants,
    perform_draw,
    remove_participant,
    reset_all,
)


setup_bp = Blueprint("setup", __name__)


class SetupView(SetupOpenMixin):
    def get(self):
        return render_template("setup.html", participants=list_participants(), locked=draw_complete())

    def post(self):
        try:
            p = add_participant(request.form.get("name") or "")
        except SetupError as e:
            flash(str(e), "error")
        else:
            flash(f"Added {p.name}.", "success")
        return redirect(url_for("setup.setup"))


class DeleteParticipantView(SetupOpenMixin):
    def post(self, participant_id: str):
        try:
            remove_participant(participant_id)
        except SetupError as e:
            flash(str(e), "error")
        return redirect(url_for("setup.setup"))


class RunDrawView(SetupOpenMixin):
    def post(self):
        try:
            perform_draw()
        except (DrawError, SetupError) as e:
            # EXHAUSTED is worth another try; INSUFFICIENT_PARTICIPANTS needs more people.
            flash(f"Draw failed: {e}", "error")
            return redirect(url_for("setup.setup"))
        flash("Names are drawn! Everyone can now find out who they gift.", "success")
        return redirect(url_for("draw.select"))


class ResetView(MethodView):
    def post(self):
        reset_all()
        flash("Everything has been reset.", "success")
        return redirect(url_for("setup.setup"))


# Register routes
setup_bp.add_url_rule("/setup", view_func=SetupView.as_view("setup"), methods=["GET", "POST"])
setup_bp.add_url_rule(
    "/setup/participants/<participant_id>/delete",
    view_func=DeleteParticipantView.as_view("delete_participant"),
    methods=["POST"],
)
setup_bp.add_url_rule("/draw", view_func=RunDrawView.as_view("run_draw"), methods=["POST"])
setup_bp.add_url_rule("/reset", view_func=ResetView.as_view("reset"), methods=["POST"])

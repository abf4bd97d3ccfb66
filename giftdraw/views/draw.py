from __future__ import annotations

from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app

from ..policies import DrawCompleteRequiredMixin
from ..models import DrawState
from ..services.draw import (
    AlreadyRevealedError,
    SetupError,
    list_participants,
    load_assignments,
    reveal,
    revealed_progress,
)
from ..services.share import build_share_url, encode_share_token


draw_bp = Blueprint("draw", __name__)


class SelectView(DrawCompleteRequiredMixin):
    def get(self):
        revealed, total = revealed_progress()
        return render_template(
            "select.html",
            participants=list_participants(),
            revealed_count=revealed,
            total=total,
            all_revealed=revealed == total,
            is_shared=DrawState.get_singleton().is_shared,
        )


class RevealView(DrawCompleteRequiredMixin):
    def post(self, participant_id: str):
        try:
            receiver = reveal(participant_id)
        except AlreadyRevealedError as e:
            flash(str(e), "info")
            return redirect(url_for("draw.select"))
        except SetupError as e:
            flash(str(e), "error")
            return redirect(url_for("draw.select"))
        return render_template("reveal.html", receiver=receiver)


class ShareView(DrawCompleteRequiredMixin):
    def get(self):
        if DrawState.get_singleton().is_shared:
            flash("This draw came from a share link; only its organizer shares it.", "info")
            return redirect(url_for("draw.select"))
        token = encode_share_token(list_participants(), load_assignments())
        base_url = current_app.config.get("SHARE_BASE_URL") or request.url_root
        return render_template("share.html", share_url=build_share_url(base_url, token))


# Register routes
draw_bp.add_url_rule("/select", view_func=SelectView.as_view("select"))
draw_bp.add_url_rule("/reveal/<participant_id>", view_func=RevealView.as_view("reveal"), methods=["POST"])
draw_bp.add_url_rule("/share", view_func=ShareView.as_view("share"))

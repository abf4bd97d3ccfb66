from __future__ import annotations

from flask import Blueprint, redirect, url_for, flash, request
from flask.views import MethodView

from ..policies import draw_complete
from ..services.share import SHARE_PARAM, import_shared_draw


public_bp = Blueprint("public", __name__)


class LandingView(MethodView):
    def get(self):
        token = request.args.get(SHARE_PARAM)
        if token and not draw_complete():
            if import_shared_draw(token):
                flash("Loaded the shared draw. Pick your name to see your match.", "success")
            else:
                flash("That share link is broken or has been altered.", "error")

        if draw_complete():
            return redirect(url_for("draw.select"))
        return redirect(url_for("setup.setup"))


public_bp.add_url_rule("/", view_func=LandingView.as_view("landing"))

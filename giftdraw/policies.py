from __future__ import annotations

from flask import redirect, url_for, flash, request
from flask.views import MethodView

from .services.draw import load_assignments


def draw_complete() -> bool:
    # Goes through validation, so a tampered store counts as "no draw".
    return bool(load_assignments())


# --------- Class-based view Mixins ----------

class SetupOpenMixin(MethodView):
    """
    Allows GET always.
    Blocks POST/PUT/PATCH/DELETE once the draw has happened.
    """
    def dispatch_request(self, *args, **kwargs):
        if request.method in {"POST", "PUT", "PATCH", "DELETE"} and draw_complete():
            flash("The draw has already happened. Reset to change the group.", "info")
            return redirect(url_for("draw.select"))
        return super().dispatch_request(*args, **kwargs)


class DrawCompleteRequiredMixin(MethodView):
    def dispatch_request(self, *args, **kwargs):
        if not draw_complete():
            flash("Add everyone and run the draw first.", "info")
            return redirect(url_for("setup.setup"))
        return super().dispatch_request(*args, **kwargs)

"""ABOUTME: JSON API endpoint for the workflow menu
ABOUTME: Returns the workflows the logged in user's role may open"""

from flask import Blueprint
from flask.typing import ResponseReturnValue
from flask_login import current_user

from v2backoffice.entrypoints.decorators import api_login_required
from v2backoffice.entrypoints.extensions import get_uow
from v2backoffice.entrypoints.responses import success_response
from v2backoffice.service_layer.workflow_service import list_workflows_for_role, workflow_to_dict
from v2backoffice.translations import _

workflows_bp = Blueprint("workflows", __name__)


@workflows_bp.route("/", methods=["GET"], strict_slashes=False)
@api_login_required
def user_workflows() -> ResponseReturnValue:
    workflows = list_workflows_for_role(get_uow(), current_user.role)
    return success_response(
        _("Workflows retrieved successfully"),
        data={"workflows": [workflow_to_dict(w) for w in workflows], "userRole": current_user.role.value},
    )

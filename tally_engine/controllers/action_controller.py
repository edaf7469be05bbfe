"""
Action Controller
Handles Tally action API endpoints
"""

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from ..models.query import ActionRequest
from ..services.dispatcher import dispatcher_for
from ..utils.constants import ErrorCode
from ..utils.logger import logger
from ..views.json_view import JsonView

router = APIRouter()


@router.get("")
async def list_actions():
    """List the supported action names"""
    actions = dispatcher_for().actions
    return {"actions": actions, "count": len(actions)}


@router.post("/{action}")
async def run_action(action: str, request: ActionRequest = ActionRequest()):
    """Run one action and return its message, report data and attachment"""
    dispatcher = dispatcher_for(request.port, request.company_name)
    if action not in dispatcher.handlers:
        return JSONResponse(
            status_code=404,
            content=JsonView.error(ErrorCode.UNKNOWN_ACTION, f"Unknown Tally action: {action}"),
        )

    result = await dispatcher.execute(action, request.params)
    if not result.success:
        logger.info(f"{action} returned failure: {result.message.splitlines()[0] if result.message else ''}")
    return JsonView.action_result(action, result)


@router.post("/{action}/download")
async def download_attachment(action: str, request: ActionRequest = ActionRequest()):
    """Run an action that produces a file (export_excel, get_invoice_document) and stream the file"""
    dispatcher = dispatcher_for(request.port, request.company_name)
    if action not in dispatcher.handlers:
        return JSONResponse(
            status_code=404,
            content=JsonView.error(ErrorCode.UNKNOWN_ACTION, f"Unknown Tally action: {action}"),
        )

    result = await dispatcher.execute(action, request.params)
    if result.attachment is None:
        code = ErrorCode.EXPORT_FAILED if result.success else ErrorCode.UNKNOWN_ERROR
        message = result.message if not result.success else f"{action} produced no file"
        return JSONResponse(status_code=422, content=JsonView.error(code, message))

    attachment = result.attachment
    return Response(
        content=attachment.content,
        media_type=attachment.media_type,
        headers={"Content-Disposition": f'attachment; filename="{attachment.filename}"'},
    )

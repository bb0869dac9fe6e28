"""Event routes.

Provides the Server-Sent Events (SSE) endpoint for agent task progress.
"""

from flask import Blueprint, Response, request

from vault_agent.services.event_bus import get_event_bus

events_bp = Blueprint("events", __name__)


@events_bp.route("/events")
def sse_events():
    """Server-Sent Events endpoint for real-time updates.

    Events:
    - agent_task_updated: {"task": <task snapshot>}
    - agent_task_discarded: {"task_id": <id>}

    Query params:
        replay: "1" to receive buffered events first.
    """
    event_bus = get_event_bus()
    include_buffer = request.args.get("replay") == "1"

    return Response(
        event_bus.get_sse_stream(include_buffer=include_buffer),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )

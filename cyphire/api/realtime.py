"""Socket.IO handlers for workroom rooms."""

import logging

from flask import current_app
from flask_socketio import SocketIO, join_room, leave_room

from ..workflows import AccountManager, WorkroomManager
from ..workflows.workroom_manager import room_name
from .security import read_user_token


logger = logging.getLogger(__name__)


def register_socket_handlers(socketio: SocketIO) -> None:
    """
    Attach the workroom room handlers.

    Clients join ``workroom:<id>`` to receive ``message:new``,
    ``message:deleted`` and ``workroom:finalised``. Only the task's client
    and selected freelancer may join.
    """

    @socketio.on("workroom:join")
    def on_join(data):
        data = data or {}
        workroom_id = str(data.get("workroom_id") or "")
        user_id = read_user_token(data.get("token"))
        if not workroom_id or not user_id:
            return {"ok": False, "error": "Not authorized"}

        settings = current_app.config["SETTINGS"]
        user = AccountManager(settings.data_dir, settings).get_user(user_id)
        if user is None or user.is_blocked:
            return {"ok": False, "error": "Not authorized"}

        if not WorkroomManager(settings.data_dir, settings).can_join(workroom_id, user_id):
            logger.warning("Socket join refused for %s on workroom %s", user_id, workroom_id)
            return {"ok": False, "error": "Forbidden"}

        join_room(room_name(workroom_id))
        return {"ok": True}

    @socketio.on("workroom:leave")
    def on_leave(data):
        workroom_id = str((data or {}).get("workroom_id") or "")
        if workroom_id:
            leave_room(room_name(workroom_id))
        return {"ok": True}

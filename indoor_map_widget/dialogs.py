"""
Editor dialogs as single-shot futures.

Every dialog resolves to exactly one DialogResult. Each handle carries a
cancellation token; a dialog superseded by a newer one is cancelled and its
result is never applied.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol
from models import Threshold

logger = logging.getLogger(__name__)

THRESHOLD_EDITOR = "threshold"
DATAPOINTS_POPUP_EDITOR = "datapoints-popup"

SAVE = "save"
DELETE = "delete"


class DialogCancelled(Exception):
    """Raised when awaiting a dialog that was cancelled before completing."""


@dataclass
class CancellationToken:
    cancelled: bool = False
    reason: str = ""

    def cancel(self, reason: str = ""):
        self.cancelled = True
        self.reason = reason


@dataclass(frozen=True)
class DialogResult:
    action: str  # save | delete
    value: Any


@dataclass
class DialogHandle:
    """One open editor dialog."""
    editor_kind: str
    initial_state: Dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    token: CancellationToken = field(default_factory=CancellationToken)
    future: Optional[asyncio.Future] = None

    def __post_init__(self):
        if self.future is None:
            self.future = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self.future.done()

    def complete(self, action: str, value: Any):
        """
        Deliver the user's edit. Only the first result counts.

        Raises:
            ValueError: If action or value is not valid for this editor
            DialogCancelled: If the dialog was already cancelled
        """
        if action not in (SAVE, DELETE):
            raise ValueError(f"Unknown dialog action: {action}")
        if action == DELETE and self.editor_kind != THRESHOLD_EDITOR:
            raise ValueError(f"Editor '{self.editor_kind}' does not support delete")
        if self.token.cancelled:
            raise DialogCancelled(f"Dialog {self.id} was cancelled: {self.token.reason}")
        if self.future.done():
            logger.warning(f"Dialog {self.id} already completed, ignoring {action}")
            return
        self.future.set_result(DialogResult(action=action, value=self._validate(value)))

    def _validate(self, value: Any) -> Any:
        if self.editor_kind == THRESHOLD_EDITOR:
            return Threshold.model_validate(value)
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ValueError("Expected a list of data point strings")
        return value

    def cancel(self, reason: str = ""):
        self.token.cancel(reason)
        if not self.future.done():
            self.future.cancel()

    async def result(self) -> DialogResult:
        """
        Wait for the user's edit.

        Raises:
            DialogCancelled: If the dialog is cancelled first
        """
        try:
            return await self.future
        except asyncio.CancelledError:
            if self.token.cancelled:
                raise DialogCancelled(f"Dialog {self.id} was cancelled: {self.token.reason}") from None
            raise


class DialogHost(Protocol):
    def show(self, editor_kind: str, initial_state: Dict[str, Any]) -> DialogHandle:
        ...


class PendingDialogHost:
    """
    Dialog host that keeps open dialogs until the frontend completes them
    by id.
    """

    def __init__(self):
        self.open_dialogs: Dict[str, DialogHandle] = {}

    def show(self, editor_kind: str, initial_state: Dict[str, Any]) -> DialogHandle:
        handle = DialogHandle(editor_kind=editor_kind, initial_state=dict(initial_state))
        self.open_dialogs[handle.id] = handle
        handle.future.add_done_callback(lambda _: self.open_dialogs.pop(handle.id, None))
        logger.info(f"Opened {editor_kind} editor {handle.id}")
        return handle

    def get(self, dialog_id: str) -> Optional[DialogHandle]:
        return self.open_dialogs.get(dialog_id)

    def list_open(self) -> List[Dict[str, Any]]:
        return [
            {"id": handle.id, "editorKind": handle.editor_kind, "initialState": handle.initial_state}
            for handle in self.open_dialogs.values()
        ]

    def cancel_all(self, reason: str = "shutdown"):
        for handle in list(self.open_dialogs.values()):
            handle.cancel(reason)
        self.open_dialogs.clear()

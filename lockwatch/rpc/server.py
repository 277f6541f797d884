"""JSON-RPC core for the lockwatch client surface.

Transport-agnostic: receives parsed JSON-RPC 2.0 messages and returns
response dicts. The handlers are thin wrappers over ReconciliationService;
reconciliation itself never happens here, only in the service's callbacks.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..engine.fs_watcher import FileChangeEvent, FileChangeKind
from ..engine.service import ReconciliationService
from ..errors import ToolError


logger = logging.getLogger(__name__)


class JsonRpcError(Exception):
    """JSON-RPC error with code and message."""

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)


class ErrorCode(Enum):
    """Standard JSON-RPC error codes."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


# Pydantic models for method parameters
class BootstrapParams(BaseModel):
    """Parameters for packrat_bootstrap."""

    model_config = ConfigDict(extra='forbid')

    dir: str = Field(description="Project directory to initialize")
    enter: bool = Field(default=False, description="Enter Packrat mode afterwards")

    @field_validator('dir')
    def validate_dir(cls, v):
        if not v.strip():
            raise ValueError("Directory cannot be empty")
        return v


class ActionParams(BaseModel):
    """Parameters for packrat_action (the Packrat start/stop hook)."""

    model_config = ConfigDict(extra='forbid')

    project: str
    action: str
    running: bool


class FileChangeParams(BaseModel):
    model_config = ConfigDict(extra='forbid')

    path: str
    kind: FileChangeKind = FileChangeKind.MODIFIED
    is_dir: Optional[bool] = None


class FilesChangedParams(BaseModel):
    """Parameters for files_changed."""

    model_config = ConfigDict(extra='forbid')

    changes: List[FileChangeParams] = Field(default_factory=list)


class FileSavedParams(BaseModel):
    model_config = ConfigDict(extra='forbid')

    path: str


class PollParams(BaseModel):
    model_config = ConfigDict(extra='forbid')

    cursor: int = Field(default=0, ge=0)


Handler = Callable[[Dict[str, Any]], Awaitable[Any]]


def error_response(request_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


class RpcCore:
    """JSON-RPC request dispatcher for one project's service."""

    def __init__(self, service: ReconciliationService):
        self.service = service

        self._handlers: Dict[str, Handler] = {
            "ping": self._handle_ping,
            "install_packrat": self._handle_install_packrat,
            "get_packrat_prerequisites": self._handle_prerequisites,
            "get_packrat_context": self._handle_context,
            "get_packrat_options": self._handle_options,
            "get_packrat_status": self._handle_status,
            "packrat_bootstrap": self._handle_bootstrap,
            "packrat_action": self._handle_action,
            "files_changed": self._handle_files_changed,
            "file_saved": self._handle_file_saved,
            "events/poll": self._handle_poll,
        }

    @property
    def methods(self) -> List[str]:
        return sorted(self._handlers)

    async def handle(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Handle a JSON-RPC message.

        Args:
            message: Parsed JSON-RPC request

        Returns:
            JSON-RPC response dict
        """
        request_id = message.get("id") if isinstance(message, dict) else None
        try:
            if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
                raise JsonRpcError(
                    ErrorCode.INVALID_REQUEST.value,
                    "Invalid JSON-RPC version"
                )

            method = message.get("method")
            if not method:
                raise JsonRpcError(
                    ErrorCode.INVALID_REQUEST.value,
                    "Missing method"
                )

            handler = self._handlers.get(method)
            if not handler:
                raise JsonRpcError(
                    ErrorCode.METHOD_NOT_FOUND.value,
                    f"Method not found: {method}"
                )

            params = message.get("params") or {}
            result = await handler(params)

            return {
                "jsonrpc": "2.0",
                "id": request_id,
                "result": result
            }
        except JsonRpcError as e:
            return error_response(request_id, e.code, e.message, e.data)
        except Exception as e:
            logger.exception(f"Internal error handling {message.get('method')!r}")
            return error_response(request_id, ErrorCode.INTERNAL_ERROR.value, str(e))

    def _parse(self, model: type, params: Dict[str, Any]) -> BaseModel:
        try:
            return model(**params)
        except (ValidationError, TypeError) as e:
            raise JsonRpcError(ErrorCode.INVALID_PARAMS.value, f"Invalid params: {e}")

    async def _handle_ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"pong": True}

    async def _handle_install_packrat(self, params: Dict[str, Any]) -> bool:
        try:
            self.service.tool.install()
        except ToolError as e:
            logger.error(str(e))
            return False
        return True

    async def _handle_prerequisites(self, params: Dict[str, Any]) -> Dict[str, Any]:
        tool = self.service.tool
        build_tools = package = False
        try:
            build_tools = tool.build_tools_available()
        except ToolError as e:
            logger.error(str(e))
        try:
            package = tool.is_installed()
        except ToolError as e:
            logger.error(str(e))
        return {
            "build_tools_available": build_tools,
            "package_available": package,
        }

    async def _handle_context(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.service.context_as_json()

    async def _handle_options(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.service.options_as_json()

    async def _handle_status(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return self.service.annotate_pending_actions({
            "context": self.service.context_as_json(),
        })

    async def _handle_bootstrap(self, params: Dict[str, Any]) -> None:
        parsed: BootstrapParams = self._parse(BootstrapParams, params)
        try:
            self.service.tool.bootstrap(parsed.dir, parsed.enter)
        except ToolError as e:
            # the tool reports its own failure to the user's console
            logger.error(str(e))
        return None

    async def _handle_action(self, params: Dict[str, Any]) -> Dict[str, Any]:
        parsed: ActionParams = self._parse(ActionParams, params)
        self.service.on_action(parsed.project, parsed.action, parsed.running)
        return {"running_action": self.service.actions.running_action.value}

    async def _handle_files_changed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        parsed: FilesChangedParams = self._parse(FilesChangedParams, params)
        self.service.on_files_changed(
            FileChangeEvent(path=c.path, kind=c.kind, is_dir=c.is_dir)
            for c in parsed.changes
        )
        return {"accepted": len(parsed.changes)}

    async def _handle_file_saved(self, params: Dict[str, Any]) -> Dict[str, Any]:
        parsed: FileSavedParams = self._parse(FileSavedParams, params)
        self.service.on_file_saved(parsed.path)
        return {"accepted": 1}

    async def _handle_poll(self, params: Dict[str, Any]) -> Dict[str, Any]:
        parsed: PollParams = self._parse(PollParams, params)
        notifier = self.service.notifier
        return {
            "events": notifier.events_since(parsed.cursor),
            "cursor": notifier.buffer.last_event_id,
        }

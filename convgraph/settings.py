"""
Tool settings normalization.

Stored tool settings may be partial, carry out-of-range numbers or use the
legacy single-server MCP shape. `normalize_tool_settings` turns any of these
into a complete `ToolSettings` record. Normalizing an already normalized
record is a no-op.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

MCP_TRANSPORTS: Tuple[str, ...] = ("http", "sse")
DAYTONA_LANGUAGES: Tuple[str, ...] = ("typescript", "python", "javascript", "go", "rust")

DEFAULT_SENSITIVE_TOOLS: Tuple[str, ...] = (
    "search_messages",
    "search_context_chunks",
    "list_attached_files",
    "read_attached_file",
    "daytona_exec",
    "mcp:*",
)

# (default, min, max)
MAX_STEPS_RANGE = (4, 1, 12)
MAX_EXPRESSION_LENGTH_RANGE = (160, 32, 2000)
MAX_RESULTS_RANGE = (6, 1, 30)
MAX_CHARS_PER_READ_RANGE = (12000, 1000, 50000)
TIMEOUT_SECONDS_RANGE = (60, 5, 600)
MAX_STDOUT_CHARS_RANGE = (6000, 500, 50000)
MAX_STDERR_CHARS_RANGE = (3000, 500, 50000)


@dataclass(frozen=True)
class PermissionSettings:
    require_confirmation: bool = True
    sensitive_tools: Tuple[str, ...] = DEFAULT_SENSITIVE_TOOLS


@dataclass(frozen=True)
class DatetimeNowSettings:
    enabled: bool = True


@dataclass(frozen=True)
class CalculatorSettings:
    enabled: bool = True
    max_expression_length: int = MAX_EXPRESSION_LENGTH_RANGE[0]


@dataclass(frozen=True)
class SearchSettings:
    """Settings shared by the message search and context-chunk search tools."""

    enabled: bool = True
    max_results: int = MAX_RESULTS_RANGE[0]


@dataclass(frozen=True)
class AttachmentReaderSettings:
    enabled: bool = True
    max_chars_per_read: int = MAX_CHARS_PER_READ_RANGE[0]


@dataclass(frozen=True)
class DaytonaSettings:
    """
    Remote sandbox execution settings.

    Attributes:
        default_language: One of DAYTONA_LANGUAGES.
        auto_create_sandbox: Create a sandbox when none is configured.
        auto_delete_created_sandbox: Delete sandboxes created on demand.
    """

    enabled: bool = False
    api_key: str = ""
    api_url: str = ""
    target: str = ""
    sandbox_id: str = ""
    default_language: str = "typescript"
    auto_create_sandbox: bool = True
    auto_delete_created_sandbox: bool = True
    default_timeout_seconds: int = TIMEOUT_SECONDS_RANGE[0]
    max_stdout_chars: int = MAX_STDOUT_CHARS_RANGE[0]
    max_stderr_chars: int = MAX_STDERR_CHARS_RANGE[0]


@dataclass(frozen=True)
class McpServerSettings:
    """
    One MCP connector.

    Attributes:
        transport: "http" or "sse".
        enabled_tools: Tool names exposed from this server; empty means all.
    """

    id: str = "mcp-server-1"
    name: str = "MCP 1"
    enabled: bool = True
    url: str = ""
    transport: str = "http"
    auth_token: str = ""
    enabled_tools: Tuple[str, ...] = ()


def default_mcp_server(index: int = 1) -> McpServerSettings:
    return McpServerSettings(id=f"mcp-server-{index}", name=f"MCP {index}")


@dataclass(frozen=True)
class McpSettings:
    enabled: bool = False
    servers: Tuple[McpServerSettings, ...] = (McpServerSettings(),)


@dataclass(frozen=True)
class ToolSettings:
    """
    Fully populated tool configuration.

    Every tool carries its own record; `to_dict` produces the mapping shape
    accepted by `normalize_tool_settings`.
    """

    enabled: bool = False
    max_steps: int = MAX_STEPS_RANGE[0]
    show_events: bool = True
    permissions: PermissionSettings = field(default_factory=PermissionSettings)
    datetime_now: DatetimeNowSettings = field(default_factory=DatetimeNowSettings)
    calculator: CalculatorSettings = field(default_factory=CalculatorSettings)
    search_messages: SearchSettings = field(default_factory=SearchSettings)
    search_context_chunks: SearchSettings = field(default_factory=SearchSettings)
    attachment_reader: AttachmentReaderSettings = field(
        default_factory=AttachmentReaderSettings
    )
    daytona: DaytonaSettings = field(default_factory=DaytonaSettings)
    mcp: McpSettings = field(default_factory=McpSettings)

    def to_dict(self) -> Dict[str, Any]:
        raw = asdict(self)
        raw["permissions"]["sensitive_tools"] = list(self.permissions.sensitive_tools)
        raw["mcp"]["servers"] = [
            dict(asdict(server), enabled_tools=list(server.enabled_tools))
            for server in self.mcp.servers
        ]
        return raw


def get_default_tool_settings() -> ToolSettings:
    return ToolSettings()


ToolSettingsLike = Union[ToolSettings, Mapping[str, Any], None]


def normalize_number(value: Any, fallback: int, minimum: int, maximum: int) -> int:
    """
    Clamp a numeric value into [minimum, maximum] and floor it.

    Numeric strings are parsed. Booleans, non-numeric and non-finite values
    yield `fallback`.
    """
    if isinstance(value, bool) or value is None:
        return fallback
    if isinstance(value, int):
        return max(minimum, min(maximum, value))
    try:
        numeric = float(value)
    except (TypeError, ValueError, OverflowError):
        return fallback
    if not math.isfinite(numeric):
        return fallback
    if numeric < minimum:
        return minimum
    if numeric > maximum:
        return maximum
    return int(math.floor(numeric))


def normalize_string_list(value: Any) -> List[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        return []
    out: List[str] = []
    for entry in value:
        if isinstance(entry, str) and entry.strip():
            out.append(entry.strip())
    return out


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else {}


def _flag(raw: Mapping[str, Any], name: str, fallback: bool) -> bool:
    value = raw.get(name)
    return value if isinstance(value, bool) else fallback


def _text(raw: Mapping[str, Any], name: str, fallback: str) -> str:
    value = raw.get(name)
    return str(fallback if value is None else value).strip()


def _number(raw: Mapping[str, Any], name: str, bounds: Tuple[int, int, int]) -> int:
    default, minimum, maximum = bounds
    return normalize_number(raw.get(name), default, minimum, maximum)


def _normalize_mcp_server(
    raw: Any, fallback: McpServerSettings, index: int
) -> McpServerSettings:
    candidate: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    server_id = candidate.get("id")
    name = candidate.get("name")
    transport = candidate.get("transport")
    return McpServerSettings(
        id=server_id.strip()
        if isinstance(server_id, str) and server_id.strip()
        else f"mcp-server-{index + 1}",
        name=name.strip() if isinstance(name, str) and name.strip() else f"MCP {index + 1}",
        enabled=_flag(candidate, "enabled", fallback.enabled),
        url=_text(candidate, "url", fallback.url),
        transport=transport if transport in MCP_TRANSPORTS else "http",
        auth_token=_text(candidate, "auth_token", fallback.auth_token),
        enabled_tools=tuple(normalize_string_list(candidate.get("enabled_tools"))),
    )


def _normalize_mcp_servers(raw: Mapping[str, Any]) -> Tuple[McpServerSettings, ...]:
    mcp = _section(raw, "mcp")
    raw_servers = mcp.get("servers")
    if not isinstance(raw_servers, (list, tuple)):
        raw_servers = raw.get("mcp_servers")
    if isinstance(raw_servers, (list, tuple)) and raw_servers:
        return tuple(
            _normalize_mcp_server(server, default_mcp_server(index + 1), index)
            for index, server in enumerate(raw_servers)
        )

    has_legacy_server = bool(
        mcp.get("url")
        or mcp.get("auth_token")
        or mcp.get("transport")
        or normalize_string_list(mcp.get("enabled_tools"))
    )
    if has_legacy_server:
        logger.debug("Migrating legacy single-server MCP settings to server list")
        legacy = {
            "id": "mcp-server-1",
            "name": "MCP 1",
            "enabled": True,
            "url": mcp.get("url"),
            "transport": mcp.get("transport"),
            "auth_token": mcp.get("auth_token"),
            "enabled_tools": mcp.get("enabled_tools"),
        }
        return (_normalize_mcp_server(legacy, default_mcp_server(1), 0),)

    return McpSettings().servers


def normalize_tool_settings(value: ToolSettingsLike = None) -> ToolSettings:
    """
    Return complete tool settings from a partial or legacy configuration.

    Args:
        value: None, a mapping in the `ToolSettings.to_dict` shape (any key may
            be missing) or a ToolSettings instance.

    Returns:
        ToolSettings with every field populated and every number clamped.
    """
    if isinstance(value, ToolSettings):
        value = value.to_dict()
    raw: Mapping[str, Any] = value if isinstance(value, Mapping) else {}
    defaults = get_default_tool_settings()

    permissions = _section(raw, "permissions")
    sensitive = normalize_string_list(permissions.get("sensitive_tools"))
    calculator = _section(raw, "calculator")
    search_messages = _section(raw, "search_messages")
    search_chunks = _section(raw, "search_context_chunks")
    reader = _section(raw, "attachment_reader")
    daytona = _section(raw, "daytona")
    daytona_defaults = defaults.daytona
    language = daytona.get("default_language")

    return ToolSettings(
        enabled=_flag(raw, "enabled", defaults.enabled),
        max_steps=_number(raw, "max_steps", MAX_STEPS_RANGE),
        show_events=_flag(raw, "show_events", defaults.show_events),
        permissions=PermissionSettings(
            require_confirmation=_flag(
                permissions,
                "require_confirmation",
                defaults.permissions.require_confirmation,
            ),
            sensitive_tools=tuple(sensitive) if sensitive else DEFAULT_SENSITIVE_TOOLS,
        ),
        datetime_now=DatetimeNowSettings(
            enabled=_flag(
                _section(raw, "datetime_now"), "enabled", defaults.datetime_now.enabled
            ),
        ),
        calculator=CalculatorSettings(
            enabled=_flag(calculator, "enabled", defaults.calculator.enabled),
            max_expression_length=_number(
                calculator, "max_expression_length", MAX_EXPRESSION_LENGTH_RANGE
            ),
        ),
        search_messages=SearchSettings(
            enabled=_flag(search_messages, "enabled", defaults.search_messages.enabled),
            max_results=_number(search_messages, "max_results", MAX_RESULTS_RANGE),
        ),
        search_context_chunks=SearchSettings(
            enabled=_flag(search_chunks, "enabled", defaults.search_context_chunks.enabled),
            max_results=_number(search_chunks, "max_results", MAX_RESULTS_RANGE),
        ),
        attachment_reader=AttachmentReaderSettings(
            enabled=_flag(reader, "enabled", defaults.attachment_reader.enabled),
            max_chars_per_read=_number(reader, "max_chars_per_read", MAX_CHARS_PER_READ_RANGE),
        ),
        daytona=DaytonaSettings(
            enabled=_flag(daytona, "enabled", daytona_defaults.enabled),
            api_key=_text(daytona, "api_key", daytona_defaults.api_key),
            api_url=_text(daytona, "api_url", daytona_defaults.api_url),
            target=_text(daytona, "target", daytona_defaults.target),
            sandbox_id=_text(daytona, "sandbox_id", daytona_defaults.sandbox_id),
            default_language=language
            if language in DAYTONA_LANGUAGES
            else daytona_defaults.default_language,
            auto_create_sandbox=_flag(
                daytona, "auto_create_sandbox", daytona_defaults.auto_create_sandbox
            ),
            auto_delete_created_sandbox=_flag(
                daytona,
                "auto_delete_created_sandbox",
                daytona_defaults.auto_delete_created_sandbox,
            ),
            default_timeout_seconds=_number(
                daytona, "default_timeout_seconds", TIMEOUT_SECONDS_RANGE
            ),
            max_stdout_chars=_number(daytona, "max_stdout_chars", MAX_STDOUT_CHARS_RANGE),
            max_stderr_chars=_number(daytona, "max_stderr_chars", MAX_STDERR_CHARS_RANGE),
        ),
        mcp=McpSettings(
            enabled=_flag(_section(raw, "mcp"), "enabled", defaults.mcp.enabled),
            servers=_normalize_mcp_servers(raw),
        ),
    )


def is_sensitive_tool_name(tool_name: str, sensitive_patterns: Sequence[str]) -> bool:
    """
    Check a tool name against exact names and `prefix*` wildcards.

    Matching is case-insensitive; blank names and patterns never match.
    """
    normalized_tool = tool_name.strip().lower()
    if not normalized_tool:
        return False
    for pattern in sensitive_patterns:
        normalized_pattern = pattern.strip().lower()
        if not normalized_pattern:
            continue
        if normalized_pattern.endswith("*"):
            if normalized_tool.startswith(normalized_pattern[:-1]):
                return True
        elif normalized_pattern == normalized_tool:
            return True
    return False

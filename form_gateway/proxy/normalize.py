import json

from .logging_utils import _log_tool_call


def _serialize_model(obj):
    if hasattr(obj, "model_dump"):
        return obj.model_dump(exclude_unset=True)
    if hasattr(obj, "dict"):
        return obj.dict()
    return obj


def _ensure_json_str(value, default=""):
    if value is None:
        return default
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return str(value)


def _parse_tool_arguments(arguments):
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _first_message(completion):
    if not isinstance(completion, dict):
        return None
    choices = completion.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    return message if isinstance(message, dict) else None


def _extract_tool_calls(completion):
    """Return ``(assistant_message, calls)`` for the first choice of a chat completion.

    Each call is a dict with ``id``, ``name``, ``arguments`` (parsed) and the raw
    ``metadata`` some callers attach to the function entry.
    """
    message = _first_message(completion)
    if not message:
        return None, []
    calls = []
    for index, call in enumerate(message.get("tool_calls") or []):
        if not isinstance(call, dict):
            continue
        function = call.get("function") or {}
        name = function.get("name") or call.get("name")
        if not name:
            continue
        raw_arguments = function.get("arguments") or call.get("arguments") or "{}"
        call_id = call.get("id") or call.get("call_id") or f"call_{index + 1}"
        _log_tool_call(name, _ensure_json_str(raw_arguments, "{}"), call_id, "chat")
        calls.append(
            {
                "id": call_id,
                "name": name,
                "arguments": _parse_tool_arguments(raw_arguments),
                "metadata": function.get("metadata") or call.get("metadata"),
            }
        )
    return message, calls


def _assistant_replay_message(message, call_ids=None):
    replay = {
        "role": "assistant",
        "content": message.get("content"),
        "tool_calls": [],
    }
    for index, call in enumerate(message.get("tool_calls") or []):
        if not isinstance(call, dict):
            continue
        call_id = call.get("id") or f"call_{index + 1}"
        if call_ids is not None and call_id not in call_ids:
            continue
        function = call.get("function") or {}
        replay["tool_calls"].append(
            {
                "id": call_id,
                "type": call.get("type") or "function",
                "function": {
                    "name": function.get("name"),
                    "arguments": _ensure_json_str(function.get("arguments"), "{}"),
                },
            }
        )
    return replay

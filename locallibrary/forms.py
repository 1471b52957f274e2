"""
Form handling as an ordered pipeline of steps.

Each step reads and updates a FormState; the pipeline stops at the first
step that leaves errors behind. The trimmed data stays on the state so a
failed form can be re-rendered with what the user typed.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from markupsafe import escape
from pydantic import ValidationError
from starlette.datastructures import FormData, UploadFile

from locallibrary.schemas import FormSchema

logger = logging.getLogger(__name__)


@dataclass
class FieldError:
    field: str
    msg: str


@dataclass
class FormState:
    data: Dict[str, Any]
    errors: List[FieldError] = field(default_factory=list)
    cleaned: Optional[FormSchema] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors and self.cleaned is not None


Step = Callable[[FormState], None]


class FormPipeline:
    def __init__(self, *steps: Step):
        self.steps = list(steps)

    def run(self, raw: Mapping[str, Any]) -> FormState:
        state = FormState(data=dict(raw))
        for step in self.steps:
            step(state)
            if state.errors:
                break
        return state

    @classmethod
    def for_schema(cls, schema: Type[FormSchema]) -> "FormPipeline":
        """normalize -> trim -> validate -> escape, driven by the schema's declarations"""
        return cls(
            normalize_lists(*schema.list_fields),
            sanitize(*schema.text_fields),
            validate(schema),
            escape_text(*schema.text_fields),
        )


def form_to_dict(form: FormData) -> Dict[str, Any]:
    """
    Flatten submitted form data: a key sent once maps to a scalar, a key
    sent several times to a list, in submission order. Uploads are dropped.
    """
    data: Dict[str, Any] = {}
    for key in form.keys():
        values = [v for v in form.getlist(key) if not isinstance(v, UploadFile)]
        if not values:
            continue
        data[key] = values[0] if len(values) == 1 else values
    return data


def as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def normalize_lists(*names: str) -> Step:
    """Absent -> [], scalar -> [scalar], lists pass through"""
    def step(state: FormState) -> None:
        for name in names:
            state.data[name] = as_list(state.data.get(name))
    return step


def _escaped(value: Any) -> Any:
    if isinstance(value, str):
        return str(escape(value))
    return value


def sanitize(*text_fields: str) -> Step:
    """
    Trim every submitted string, including the items of list-valued text_fields.
    Missing text fields become "" so the length rules report them.
    """
    def step(state: FormState) -> None:
        for name, value in list(state.data.items()):
            if isinstance(value, str):
                state.data[name] = value.strip()
        for name in text_fields:
            value = state.data.get(name, "")
            if isinstance(value, list):
                value = [v.strip() if isinstance(v, str) else v for v in value]
            state.data[name] = value
    return step


def validate(schema: Type[FormSchema]) -> Step:
    """Validate against the schema, collecting one message per failing field"""
    def step(state: FormState) -> None:
        try:
            state.cleaned = schema.model_validate(state.data)
        except ValidationError as exc:
            seen = set()
            for error in exc.errors():
                name = str(error["loc"][0]) if error["loc"] else "__all__"
                if name in seen:
                    continue
                seen.add(name)
                default = error["msg"]
                if error["type"] == "value_error" and "error" in error.get("ctx", {}):
                    default = str(error["ctx"]["error"])
                state.errors.append(
                    FieldError(field=name, msg=schema.message_for(name, error["type"], default))
                )
            logger.debug(f"{schema.__name__} rejected: {[e.field for e in state.errors]}")
    return step


def escape_text(*text_fields: str) -> Step:
    """Escape markup in the validated text_fields, after the length rules have run"""
    def step(state: FormState) -> None:
        if state.cleaned is None:
            return
        updates = {}
        for name in text_fields:
            value = getattr(state.cleaned, name)
            updates[name] = [_escaped(v) for v in value] if isinstance(value, list) else _escaped(value)
        state.cleaned = state.cleaned.model_copy(update=updates)
    return step

from pydantic import BaseModel, ValidationError as PydanticValidationError

from utils.errors import ValidationError, validation_error_from


def parse_form_json(model: type[BaseModel], raw: str | None):
    """
    Multipart endpoints carry their JSON body in a single ``data`` field.
    Parsed here so a bad body fails before any upload is written.
    """
    if not raw:
        raise ValidationError(errors=["data: field required"])
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise validation_error_from(exc)

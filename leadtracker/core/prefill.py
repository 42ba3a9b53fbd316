"""Form prefill: copy UTM query params into matching form-builder inputs."""

from leadtracker.core.attribution import PageView
from leadtracker.core.binder import Document

PREFILL_FIELDS = ("utm_campaign", "utm_term", "utm_source", "utm_medium")
FIELD_NAME = "form_fields[{key}]"


def prefill_form_fields(page: PageView, document: Document) -> dict[str, str]:
    """Set input values from the current query. Returns {field name: value} for fields set."""
    query = page.query
    filled = {}
    for key in PREFILL_FIELDS:
        value = query.get(key)
        name = FIELD_NAME.format(key=key)
        field = document.find_by_name(name)
        if value and field is not None:
            field.set_attribute("value", value)
            filled[name] = value
    return filled

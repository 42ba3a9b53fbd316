"""
Page-ready orchestration.

Order is fixed: resolve attribution → bind contact elements → prefill forms.
Every handler closes over the same resolved snapshot; device and traffic type
are computed once per page view, not per click.
"""

from dataclasses import dataclass

from leadtracker.core.attribution import PageAttribution, PageView, resolve_attribution
from leadtracker.core.binder import ContactTarget, Document, bind_targets, collect_targets
from leadtracker.core.delivery import DeliveryChannel
from leadtracker.core.prefill import prefill_form_fields
from leadtracker.core.session_store import SessionStore


@dataclass
class PageBinding:
    attribution: PageAttribution
    targets: list[ContactTarget]
    prefilled: dict[str, str]


class Tracker:
    def __init__(self, store: SessionStore, channel: DeliveryChannel):
        self.store = store
        self.channel = channel

    def page_ready(self, page: PageView, document: Document) -> PageBinding:
        attribution = resolve_attribution(page, self.store)
        targets = bind_targets(collect_targets(document.elements), attribution, self.channel.dispatch)
        prefilled = prefill_form_fields(page, document)
        return PageBinding(attribution=attribution, targets=targets, prefilled=prefilled)

"""The interception pipeline — what happens to a BSN at each boundary.

Four hooks, called by the HTTP layer around the store:

    on_pre_search       token filter values  -> pseudonym references
    on_pre_create       token subject        -> pseudonym reference (write)
    on_pre_show         pseudonym reference  -> fresh token for the requester (read)
    on_response_filter  create without audience -> warning instead of the record

Hooks keep no state between calls. Each one mutates what it is given and
returns it, or raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from bsnguard.config import GatewayConfig
from bsnguard.errors import (
    CodecError,
    CustodianMismatchError,
    InvalidTokenFormatError,
    MissingAudienceHeaderError,
    MissingFilterError,
)
from bsnguard.interface import PseudonymBackend
from bsnguard.models import (
    CodeableConcept,
    DocumentReference,
    FhirModel,
    Identifier,
    OperationOutcome,
    OperationOutcomeIssue,
    Reference,
)
from bsnguard.store import SUBJECT_PARAMS, Record, SearchRequest

logger = logging.getLogger(__name__)

DOCUMENT_REFERENCE = "DocumentReference"


@dataclass(frozen=True)
class RequestContext:
    """The parts of an HTTP request the hooks look at."""

    method: str
    audience: Optional[str] = None

    @property
    def is_create(self) -> bool:
        return self.method.upper() == "POST"

    @property
    def has_audience(self) -> bool:
        return bool(self.audience)


class InterceptionPipeline:
    def __init__(self, backend: PseudonymBackend, config: GatewayConfig) -> None:
        self.backend = backend
        self.config = config

    # ── Helpers ───────────────────────────────────────────────

    def pseudonym_reference(self, pseudonym: str) -> str:
        return f"{self.config.pseudonym_system}/Patient/{pseudonym}"

    def pseudonym_from_reference(self, reference: Optional[str]) -> Optional[str]:
        """Pseudonym part of a stored subject reference, or None if not ours."""
        prefix = f"{self.config.pseudonym_system}/Patient/"
        if not reference or not reference.startswith(prefix):
            return None
        return reference[len(prefix):] or None

    def _missing_audience(self) -> MissingAudienceHeaderError:
        return MissingAudienceHeaderError(
            f"Resource can not be processed as there is no {self.config.audience_header} header present."
        )

    # ── Hooks ─────────────────────────────────────────────────

    def on_pre_search(self, search: SearchRequest, ctx: RequestContext) -> SearchRequest:
        """Rewrite token-valued patient/subject filters into pseudonym references."""
        if search.resource_type != DOCUMENT_REFERENCE:
            return search

        for name in SUBJECT_PARAMS:
            values = search.params.get(name)
            if not values:
                continue
            search.params[name] = [self._rewrite_filter_value(value) for value in values]

        if not search.has_subject_filter():
            raise MissingFilterError("You have to search by 'patient' or 'subject' (patient).")
        logger.debug("Search parameters after rewrite: %s", sorted(search.params))
        return search

    def _rewrite_filter_value(self, value: str) -> str:
        system, sep, token = value.partition("|")
        if not sep or system != self.config.token_system:
            return value
        logger.debug("Converting transport token in search parameter")
        return self.pseudonym_reference(self.backend.to_pseudonym(token))

    def on_pre_create(self, resource: Record, ctx: RequestContext) -> Record:
        """Validate a new DocumentReference and store its subject as a pseudonym."""
        if not isinstance(resource, DocumentReference):
            return resource
        if self.config.strict_create and not ctx.has_audience:
            raise self._missing_audience()

        self._validate_custodian(resource, ctx)

        subject = resource.subject
        identifier = subject.identifier if subject is not None else None
        if identifier is None or identifier.system != self.config.token_system:
            return resource
        if not identifier.value:
            raise InvalidTokenFormatError("empty transport token")

        pseudonym = self.backend.to_pseudonym(identifier.value)
        resource.subject = Reference(reference=self.pseudonym_reference(pseudonym))
        logger.info("Replaced transport token subject with pseudonym reference")
        return resource

    def _validate_custodian(self, resource: DocumentReference, ctx: RequestContext) -> None:
        if not ctx.has_audience:
            return
        custodian = resource.custodian
        if custodian is None:
            return
        code = custodian.identifier.value if custodian.identifier is not None else None
        if not code:
            # Resolving the organisation would take a fetch; accepted unchecked.
            logger.warning(
                "Custodian %s has no identifier, authority check skipped",
                custodian.reference or "without reference",
            )
            return
        if code != ctx.audience:
            raise CustodianMismatchError(
                f"Custodian {code} does not match requester {ctx.audience}"
            )

    def on_pre_show(
        self,
        resources: Sequence[Record],
        ctx: RequestContext,
        *,
        bundle: bool = False,
    ) -> Sequence[Record]:
        """Replace stored pseudonyms with tokens for the requesting audience.

        A create without audience is let through here; the response filter
        swaps the body. In ``bundle`` mode a record whose pseudonym cannot be
        parsed keeps its subject as stored, backend failures always raise.
        """
        if not ctx.has_audience:
            if ctx.is_create:
                return resources
            raise self._missing_audience()

        for resource in resources:
            if not isinstance(resource, DocumentReference):
                continue
            try:
                self._tokenize_subject(resource, ctx.audience)
            except CodecError:
                if not bundle:
                    raise
                logger.warning("Could not tokenize subject of DocumentReference/%s", resource.id)
        return resources

    def _tokenize_subject(self, resource: DocumentReference, audience: str) -> None:
        subject = resource.subject
        if subject is None:
            return
        pseudonym = self.pseudonym_from_reference(subject.reference)
        if pseudonym is None:
            return
        token = self.backend.to_token(pseudonym, audience)
        resource.subject = Reference(
            identifier=Identifier(system=self.config.token_system, value=token)
        )

    def on_response_filter(
        self,
        body: FhirModel,
        ctx: RequestContext,
        *,
        location: Optional[str] = None,
    ) -> FhirModel:
        """Hide a freshly created record from a caller that named no audience."""
        if not ctx.is_create or ctx.has_audience:
            return body
        created = location or getattr(body, "id", None) or "unknown"
        logger.info("Created %s returned as warning: no audience header", created)
        return OperationOutcome(
            issue=[
                OperationOutcomeIssue(
                    severity="warning",
                    code="security",
                    details=CodeableConcept(
                        text=(
                            f"Resource was created ({created}, see Location header), but can not "
                            f"be presented as no audience has been supplied. Do a GET with "
                            f"{self.config.audience_header} header to retrieve the Resource."
                        )
                    ),
                )
            ]
        )

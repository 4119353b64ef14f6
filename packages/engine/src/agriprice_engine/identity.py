"""
identity.py — Canonical identity store.

One IdentityStore per entity kind (product, variety, market, country,
price stage). Source entities point at most at one canonical record of
their kind; link() is the only way that pointer changes, whether the
caller is an operator (manual links) or the matcher (automatic links).

Canonical records are never deleted while anything still references them:
delete() refuses with HasDependents instead of cascading.

Usage:
    from agriprice_engine.identity import IdentityStore

    products = IdentityStore(repo, EntityKind.PRODUCT)
    products.link("AZ:product:12", apple.id)          # manual, score 1.0
    products.find_unlinked(source="EU", q="apple")
    products.delete(apple.id)                         # HasDependents while linked
"""

from __future__ import annotations

import structlog

from agriprice_shared.constants import EntityKind
from agriprice_shared.models import (
    CanonicalMarket,
    CanonicalRecord,
    CanonicalVariety,
    SourceEntity,
)
from agriprice_engine.errors import HasDependents, InvalidLink, NotFound
from agriprice_engine.loaders.base import Repository

log = structlog.get_logger(__name__)


class IdentityStore:
    """Canonical records of one kind and the source links pointing at them."""

    def __init__(self, repo: Repository, kind: EntityKind | str) -> None:
        self._repo = repo
        self.kind = EntityKind(kind)
        self._log = log.bind(kind=self.kind.value)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, canonical_id: str) -> CanonicalRecord:
        record = self._repo.get_canonical(self.kind, canonical_id)
        if record is None:
            raise NotFound(
                f"Canonical {self.kind.value} not found: {canonical_id}",
                kind=self.kind.value,
                id=canonical_id,
            )
        return record

    def get_source(self, source_id: str) -> SourceEntity:
        entity = self._repo.get_source_entity(self.kind, source_id)
        if entity is None:
            raise NotFound(
                f"Source {self.kind.value} not found: {source_id}",
                kind=self.kind.value,
                id=source_id,
            )
        return entity

    def list_canonical(self) -> list[CanonicalRecord]:
        return self._repo.list_canonical(self.kind)

    def find_unlinked(
        self,
        *,
        source: str | None = None,
        country_code: str | None = None,
        q: str | None = None,
    ) -> list[SourceEntity]:
        """
        Source entities without a canonical link.

        Args:
            source:       Restrict to one source kind.
            country_code: Restrict to entities of one country (ISO2).
            q:            Case-insensitive substring of name / name_en / code.
        """
        needle = q.casefold() if q else None
        country = country_code.upper() if country_code else None
        unlinked: list[SourceEntity] = []
        for entity in self._repo.list_source_entities(self.kind, source=source):
            if entity.is_linked:
                continue
            if country and (entity.country_code or "").upper() != country:
                continue
            if needle and not any(
                needle in value.casefold()
                for value in (entity.name, entity.name_en, entity.code)
                if value
            ):
                continue
            unlinked.append(entity)
        return unlinked

    def linked_to(self, canonical_id: str) -> list[SourceEntity]:
        return self._repo.list_source_entities(self.kind, canonical_id=canonical_id)

    def dependents(self, canonical_id: str) -> int:
        """
        Number of records that still reference a canonical record.

        Counts linked source entities of this kind, plus:
        - products: owned varieties and stored aggregates
        - varieties: source products narrowed to the variety
        - countries: canonical markets in the country
        """
        count = len(self.linked_to(canonical_id))
        if self.kind is EntityKind.PRODUCT:
            count += sum(
                1
                for v in self._repo.list_canonical(EntityKind.VARIETY)
                if isinstance(v, CanonicalVariety) and v.product_id == canonical_id
            )
            count += self._repo.count_aggregates(canonical_id)
        elif self.kind is EntityKind.VARIETY:
            count += sum(
                1
                for e in self._repo.list_source_entities(EntityKind.PRODUCT)
                if e.canonical_variety_id == canonical_id
            )
        elif self.kind is EntityKind.COUNTRY:
            count += sum(
                1
                for m in self._repo.list_canonical(EntityKind.MARKET)
                if isinstance(m, CanonicalMarket) and m.country_id == canonical_id
            )
        return count

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def link(
        self,
        source_id: str,
        canonical_id: str | None,
        *,
        manual: bool = True,
        score: float | None = None,
    ) -> SourceEntity:
        """
        Point a source entity at a canonical record (or at nothing).

        Overwrites any previous link; repeating a call is a no-op.

        Args:
            source_id:    Source entity id.
            canonical_id: Canonical record id, or None to clear the link.
            manual:       Operator link: is_manual=True, match_score=1.0.
                          Clearing a link manually also clears score and flag.
            score:        Match score of an automatic (manual=False) link;
                          recorded even when canonical_id is None.

        Raises:
            NotFound:    Unknown source or canonical id.
            InvalidLink: A source variety linked to a variety of a different
                         canonical product than its parent's.
        """
        with self._repo.transaction():
            entity = self.get_source(source_id)
            if canonical_id is not None:
                canonical = self.get(canonical_id)
                self._check_variety_scope(entity, canonical)

            if manual:
                update = {
                    "canonical_id": canonical_id,
                    "match_score": 1.0 if canonical_id is not None else None,
                    "is_manual": canonical_id is not None,
                }
            else:
                update = {
                    "canonical_id": canonical_id,
                    "match_score": score,
                    "is_manual": False,
                }
            if canonical_id is None:
                update["canonical_variety_id"] = None

            updated = entity.model_copy(update=update)
            self._repo.save_source_entity(updated)

        self._log.info(
            "entity_linked" if canonical_id is not None else "entity_unlinked",
            source_id=source_id,
            canonical_id=canonical_id,
            manual=manual,
            score=updated.match_score,
        )
        return updated

    def unlink(self, source_id: str) -> SourceEntity:
        return self.link(source_id, None)

    def _check_variety_scope(self, entity: SourceEntity, canonical: CanonicalRecord) -> None:
        if not isinstance(canonical, CanonicalVariety) or not entity.parent_id:
            return
        parent = self._repo.get_source_entity(EntityKind.PRODUCT, entity.parent_id)
        if parent is None or parent.canonical_id is None:
            return
        if canonical.product_id != parent.canonical_id:
            raise InvalidLink(
                f"Variety {canonical.id} belongs to product {canonical.product_id}, "
                f"but source product {parent.id} is linked to {parent.canonical_id}",
                source_id=entity.id,
                canonical_id=canonical.id,
            )

    # ------------------------------------------------------------------
    # Canonical records
    # ------------------------------------------------------------------

    def create(self, record: CanonicalRecord) -> CanonicalRecord:
        """
        Add a canonical record.

        Raises:
            InvalidLink: Duplicate id, or a market whose (country, name) is taken.
            NotFound:    A variety's product or a market's country is unknown.
        """
        with self._repo.transaction():
            if self._repo.get_canonical(self.kind, record.id) is not None:
                raise InvalidLink(
                    f"Canonical {self.kind.value} already exists: {record.id}", id=record.id
                )
            if isinstance(record, CanonicalVariety):
                IdentityStore(self._repo, EntityKind.PRODUCT).get(record.product_id)
            if isinstance(record, CanonicalMarket):
                IdentityStore(self._repo, EntityKind.COUNTRY).get(record.country_id)
                for market in self._repo.list_canonical(EntityKind.MARKET):
                    if (
                        isinstance(market, CanonicalMarket)
                        and market.country_id == record.country_id
                        and market.name.casefold() == record.name.casefold()
                    ):
                        raise InvalidLink(
                            f"Market {record.name!r} already exists in country {record.country_id}",
                            country_id=record.country_id,
                            name=record.name,
                        )
            self._repo.add_canonical(self.kind, record)

        self._log.info("canonical_created", canonical_id=record.id)
        return record

    def delete(self, canonical_id: str) -> None:
        """
        Delete a canonical record that nothing references.

        Raises:
            NotFound:      Unknown id.
            HasDependents: Linked source entities, varieties, aggregates or
                           markets still reference the record.
        """
        with self._repo.transaction():
            self.get(canonical_id)
            count = self.dependents(canonical_id)
            if count:
                raise HasDependents(
                    f"Canonical {self.kind.value} {canonical_id} has {count} dependent record(s)",
                    kind=self.kind.value,
                    id=canonical_id,
                    dependents=count,
                )
            self._repo.delete_canonical(self.kind, canonical_id)

        self._log.info("canonical_deleted", canonical_id=canonical_id)

    def convert_to_variety(self, product_id: str, into_product_id: str) -> CanonicalVariety:
        """
        Turn a canonical product into a variety of another product.

        Source products linked to the converted product are re-pointed at the
        target product, narrowed to the new variety. The converted product's
        aggregates are dropped; the target needs a recompute afterwards.

        Raises:
            NotFound:      Either product is unknown.
            InvalidLink:   Converting a product into itself, or called on a
                           store that is not the product store.
            HasDependents: The product still owns varieties.
        """
        if self.kind is not EntityKind.PRODUCT:
            raise InvalidLink(f"convert_to_variety is not defined for {self.kind.value}")
        if product_id == into_product_id:
            raise InvalidLink("Cannot convert a product into a variety of itself", id=product_id)

        with self._repo.transaction():
            product = self.get(product_id)
            self.get(into_product_id)

            owned = [
                v.id
                for v in self._repo.list_canonical(EntityKind.VARIETY)
                if isinstance(v, CanonicalVariety) and v.product_id == product_id
            ]
            if owned:
                raise HasDependents(
                    f"Product {product_id} owns {len(owned)} variety(ies)",
                    id=product_id,
                    dependents=len(owned),
                )

            variety = CanonicalVariety(
                product_id=into_product_id,
                slug=product.slug,
                name_en=product.name_en,
                name_az=product.name_az,
                name_ru=product.name_ru,
                aliases=product.aliases,
            )
            self._repo.add_canonical(EntityKind.VARIETY, variety)

            moved = self.linked_to(product_id)
            for entity in moved:
                self._repo.save_source_entity(
                    entity.model_copy(
                        update={
                            "canonical_id": into_product_id,
                            "canonical_variety_id": variety.id,
                        }
                    )
                )
            self._repo.replace_aggregates(product_id, [])
            self._repo.delete_canonical(EntityKind.PRODUCT, product_id)

        self._log.info(
            "product_converted_to_variety",
            product_id=product_id,
            into_product_id=into_product_id,
            variety_id=variety.id,
            relinked=len(moved),
        )
        return variety

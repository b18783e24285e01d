"""
schemas/ledger_schema.py — Marshmallow schemas for externally supplied ledger records.

The balance engine accepts records from collaborators it does not control
(an importer, another service, a JSON export). These schemas are the gate
between such raw dicts and the engine's frozen records.

Validation responsibility:
  - This file: structure and types. Missing payer, a non-numeric amount, an
    unparseable date, duplicate group members → the whole load fails with
    InputContractViolation.
  - services/balance_service.py: empty splits and non-positive amounts.
    Those are valid records as far as the schema is concerned; the engine
    skips them per item so one bad historical row never blocks a group.

Keys are camelCase (groupId, paidBy, splitAmong) to match the payloads
produced by Evenly clients.
"""

from __future__ import annotations

from datetime import date, datetime

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    post_load,
    validate,
    validates,
)

from evenly.app.errors import InputContractViolation
from evenly.app.services.ledger import ExpenseRecord, GroupRecord, SettlementRecord


# ── Custom field ───────────────────────────────────────────────────────────

class LedgerDate(fields.Field):
    """
    Accepts date / datetime objects or ISO-8601 strings, date-only
    ("2024-03-05") or full timestamps ("2024-03-05T10:00:00Z").
    """

    default_error_messages = {"invalid": "Not a valid ISO-8601 date or datetime."}

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, (datetime, date)):
            return value
        if not isinstance(value, str):
            raise self.make_error("invalid")
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            if "T" in text or " " in text:
                return datetime.fromisoformat(text)
            return date.fromisoformat(text)
        except ValueError:
            raise self.make_error("invalid") from None

    def _serialize(self, value, attr, obj, **kwargs):
        return None if value is None else value.isoformat()


def _validate_identifier(value: str) -> None:
    if not value.strip():
        raise ValidationError("Member identifier must not be blank.")


# ── Schemas ────────────────────────────────────────────────────────────────

class ExpenseRecordSchema(Schema):

    class Meta:
        unknown = EXCLUDE

    group_id = fields.Raw(required=True, data_key="groupId")

    # allow_none: a missing amount makes the record skippable, not invalid.
    amount = fields.Decimal(required=True, allow_none=True, allow_nan=False)

    description = fields.String(load_default="")
    date = LedgerDate(required=True)
    paid_by = fields.String(required=True, data_key="paidBy", validate=_validate_identifier)

    # An empty split is structurally fine; the engine skips the record.
    split_among = fields.List(
        fields.String(validate=_validate_identifier),
        data_key="splitAmong",
        load_default=list,
    )
    invoice = fields.String(load_default=None, allow_none=True)

    @post_load
    def make_record(self, data, **kwargs) -> ExpenseRecord:
        return ExpenseRecord(
            group_id=data["group_id"],
            amount=data["amount"],
            description=data["description"],
            date=data["date"],
            paid_by=data["paid_by"],
            split_among=tuple(data["split_among"]),
            invoice=data["invoice"],
        )


class SettlementRecordSchema(Schema):

    class Meta:
        unknown = EXCLUDE

    group_id = fields.Raw(required=True, data_key="groupId")
    paid_by = fields.String(required=True, data_key="paidBy", validate=_validate_identifier)
    paid_to = fields.String(required=True, data_key="paidTo", validate=_validate_identifier)
    amount = fields.Decimal(required=True, allow_none=True, allow_nan=False)
    date = LedgerDate(required=True)

    @post_load
    def make_record(self, data, **kwargs) -> SettlementRecord:
        return SettlementRecord(**data)


class GroupRecordSchema(Schema):

    class Meta:
        unknown = EXCLUDE

    id = fields.Raw(required=True)
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    currency = fields.String(required=True, validate=validate.Length(equal=3))
    members = fields.List(
        fields.String(validate=_validate_identifier),
        load_default=list,
    )

    @validates("members")
    def validate_unique_members(self, value, **kwargs) -> None:
        if len(set(value)) != len(value):
            raise ValidationError("Group members must be unique.")

    @post_load
    def make_record(self, data, **kwargs) -> GroupRecord:
        return GroupRecord(
            id=data["id"],
            name=data["name"],
            currency=data["currency"].upper(),
            members=tuple(data["members"]),
        )


# ── Loaders ────────────────────────────────────────────────────────────────

def _first_error(messages) -> tuple[str | None, str]:
    """
    Walks a marshmallow messages structure down to the first leaf.

    many=True nests messages under the item index: {0: {"paidBy": ["..."]}}.
    Returns (field, message).
    """
    field = None
    node = messages
    while isinstance(node, dict) and node:
        key, node = next(iter(node.items()))
        if isinstance(key, str) and key != "_schema":
            field = key
    if isinstance(node, list):
        node = node[0] if node else "Invalid value."
        if isinstance(node, dict):
            return _first_error(node)
    return field, str(node)


def _load_many(schema: Schema, raw, name: str) -> list:
    if raw is None or not isinstance(raw, (list, tuple)):
        raise InputContractViolation(
            f"{name} must be a list, got {type(raw).__name__}.",
            field=name,
        )
    try:
        return schema.load(list(raw))
    except ValidationError as exc:
        field, message = _first_error(exc.messages)
        raise InputContractViolation(f"Invalid {name}: {message}", field=field) from exc


def load_expenses(raw) -> list[ExpenseRecord]:
    return _load_many(ExpenseRecordSchema(many=True), raw, "expenses")


def load_settlements(raw) -> list[SettlementRecord]:
    return _load_many(SettlementRecordSchema(many=True), raw, "settlements")


def load_groups(raw) -> list[GroupRecord]:
    return _load_many(GroupRecordSchema(many=True), raw, "groups")


def load_group(raw) -> GroupRecord:
    """Loads a single group; raises InputContractViolation if malformed."""
    if not isinstance(raw, dict):
        raise InputContractViolation(
            f"group must be an object, got {type(raw).__name__}.",
            field="group",
        )
    return load_groups([raw])[0]

"""Typer command handlers."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import NoReturn

import typer
from pydantic import BaseModel

from core.errors import VeritasError
from core.orchestrator import QueryOptions
from core.progress import StreamEventType
from core.runtime import RuntimeBuilder, RuntimeBundle
from memory.types.claims import ClaimKind, ClaimState
from memory.types.facts import FactType, TrustState, VerificationLevel


def _runtime(root: Path | None = None) -> RuntimeBundle:
    bundle = RuntimeBuilder(root=root).build()
    return bundle


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def _fail(exc: VeritasError) -> NoReturn:
    typer.echo(json.dumps(exc.to_dict(), indent=2), err=True)
    raise typer.Exit(code=1)


def ask(query: str, user_id: str, session_id: str | None, trace: bool, require_anchor: bool | None) -> None:
    """Answer one query through the full pipeline."""
    bundle = _runtime()
    options = QueryOptions(return_trace=trace, require_anchor=require_anchor)
    response = asyncio.run(bundle.orchestrator.process_query(query, user_id, session_id, options))
    if response.is_verified:
        typer.echo(response.answer)
    else:
        typer.echo(response.message)
    typer.echo(f"confidence={response.confidence} verified={response.is_verified}")
    for source in response.sources:
        typer.echo(f"- {source.title or source.identifier} [{source.type}:{source.identifier}] {source.url}")
    if trace:
        _echo_json(response.trace)


def stream(query: str, user_id: str, session_id: str | None) -> None:
    """Print thinking steps and answer chunks as they arrive."""
    bundle = _runtime()

    async def consume() -> None:
        async for event in bundle.orchestrator.stream_query(query, user_id, session_id):
            if event.type == StreamEventType.THINKING:
                typer.echo(f"[{event.data['phase']}] {event.data['text']}")
            elif event.type == StreamEventType.ANSWER_CHUNK:
                typer.echo(event.data["text"], nl=False)
            elif event.type == StreamEventType.FINAL:
                if not event.data.get("is_verified"):
                    typer.echo(event.data.get("message", ""))
                else:
                    typer.echo("")
                typer.echo(f"confidence={event.data['confidence']} verified={event.data['is_verified']}")
            else:
                typer.echo(f"error: {event.data.get('message', '')}", err=True)

    asyncio.run(consume())


def chat(user_id: str) -> None:
    """Run interactive chat loop."""
    bundle = _runtime()
    typer.echo("Chat mode. Type 'exit' to quit.")
    while True:
        user_text = typer.prompt("you")
        if user_text.strip().lower() in {"exit", "quit"}:
            typer.echo("bye")
            break
        response = asyncio.run(bundle.orchestrator.process_query(user_text, user_id))
        text = response.answer if response.is_verified else response.message
        typer.echo(f"assistant: {text} ({response.confidence}%)")


def checkpoint_create(owner_id: str, label: str, claim_ids: list[str], description: str) -> None:
    bundle = _runtime()
    checkpoint = bundle.orchestrator.create_checkpoint(owner_id, label, claim_ids, description)
    _echo_json(checkpoint)


def checkpoint_list(owner_id: str | None) -> None:
    bundle = _runtime()
    checkpoints = bundle.checkpoints.list_checkpoints(owner_id)
    _echo_json(
        [
            {
                "id": c.id,
                "label": c.label,
                "owner_id": c.owner_id,
                "kind": c.kind,
                "claims": len(c.snapshots),
                "state_hash": c.state_hash,
                "created_at": c.created_at,
            }
            for c in checkpoints
        ]
    )


def checkpoint_rollback(checkpoint_id: str, owner_id: str) -> None:
    bundle = _runtime()
    try:
        result = bundle.orchestrator.rollback(checkpoint_id, owner_id)
    except VeritasError as exc:
        _fail(exc)
    _echo_json(result)


def checkpoint_delete(checkpoint_id: str, owner_id: str) -> None:
    bundle = _runtime()
    try:
        bundle.orchestrator.delete_checkpoint(checkpoint_id, owner_id)
    except VeritasError as exc:
        _fail(exc)
    typer.echo(f"Deleted checkpoint {checkpoint_id}")


def invalidate(claim_id: str, by: str, reason: str, cascade: bool, checkpoint_owner: str | None) -> None:
    bundle = _runtime()
    try:
        result = bundle.orchestrator.invalidate(claim_id, by, reason, cascade, checkpoint_owner)
    except VeritasError as exc:
        _fail(exc)
    _echo_json(result)


def facts_extract(user_id: str, text: str, level: VerificationLevel) -> None:
    """Extract and store facts from a message."""
    bundle = _runtime()
    result = bundle.orchestrator.persist_message(user_id, text, level)
    _echo_json(result)


def facts_list(user_id: str, state: TrustState | None, types: list[FactType] | None) -> None:
    bundle = _runtime()
    _echo_json(bundle.facts.list_facts(user_id, state, types or None))


def facts_verify(fact_id: str, reviewer_id: str, approve: bool) -> None:
    bundle = _runtime()
    try:
        fact = bundle.orchestrator.verify_fact(fact_id, reviewer_id, approve)
    except VeritasError as exc:
        _fail(exc)
    _echo_json(fact)


def memory_inspect(
    limit: int = 10,
    owner_id: str | None = None,
    kind: ClaimKind | None = None,
    state: ClaimState | None = None,
    claim_id: str | None = None,
) -> None:
    """Inspect ledger claims, or one claim with its dependents and audit trail."""
    bundle = _runtime()
    if claim_id:
        try:
            claim = bundle.ledger.get_claim(claim_id)
        except VeritasError as exc:
            _fail(exc)
        data = claim.model_dump(mode="json", exclude={"embedding"})
        data["dependents"] = [c.id for c in bundle.ledger.get_dependents(claim_id)]
        _echo_json(data)
        return
    claims = bundle.ledger.list_claims(
        owner_id=owner_id, kind=kind, states=[state] if state else None
    )[-limit:]
    _echo_json(
        [
            {
                "id": c.id,
                "kind": c.kind,
                "state": c.current_state,
                "branch": c.epistemic_branch,
                "confidence": c.confidence_score,
                "statement": c.statement[:120],
                "invalidated": c.is_invalidated,
                "updated_at": c.updated_at,
            }
            for c in claims
        ]
    )


def config_show() -> None:
    """Show effective runtime config."""
    bundle = _runtime()
    _echo_json(bundle.config)


def audit_tail(limit: int) -> None:
    bundle = _runtime()
    _echo_json(bundle.audit.read_events(limit))


def _json_safe(payload: object) -> object:
    """Convert models, enums and datetimes for JSON output."""
    if isinstance(payload, BaseModel):
        exclude = {"embedding"} if "embedding" in type(payload).model_fields else None
        return payload.model_dump(mode="json", exclude=exclude)
    if is_dataclass(payload) and not isinstance(payload, type):
        return _json_safe(asdict(payload))
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_json_safe(v) for v in payload]
    if isinstance(payload, Enum):
        return payload.value
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload

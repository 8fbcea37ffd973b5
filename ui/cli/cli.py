"""CLI entrypoint for veritas."""

from __future__ import annotations

from typing import Optional

import typer

from memory.types.claims import ClaimKind, ClaimState
from memory.types.facts import FactType, TrustState, VerificationLevel
from ui.cli import commands

app = typer.Typer(help="Verified question answering with a revocable memory ledger")
checkpoint_app = typer.Typer(help="Checkpoint commands")
memory_app = typer.Typer(help="Memory ledger commands")
facts_app = typer.Typer(help="User fact commands")
config_app = typer.Typer(help="Configuration commands")
audit_app = typer.Typer(help="Audit log commands")


@app.command("ask")
def ask_cmd(
    query: str = typer.Argument(..., help="Question to answer"),
    user: str = typer.Option("cli", "--user", help="User id"),
    session: Optional[str] = typer.Option(None, "--session", help="Session id"),
    trace: bool = typer.Option(False, "--trace", help="Print routing and validation trace"),
    require_anchor: Optional[bool] = typer.Option(
        None, "--require-anchor/--no-require-anchor", help="Override the source requirement"
    ),
) -> None:
    """Answer a question, or explain why it cannot be answered."""
    commands.ask(query=query, user_id=user, session_id=session, trace=trace, require_anchor=require_anchor)


@app.command("stream")
def stream_cmd(
    query: str = typer.Argument(..., help="Question to answer"),
    user: str = typer.Option("cli", "--user", help="User id"),
    session: Optional[str] = typer.Option(None, "--session", help="Session id"),
) -> None:
    """Answer a question while showing progress."""
    commands.stream(query=query, user_id=user, session_id=session)


@app.command("chat")
def chat_cmd(user: str = typer.Option("cli", "--user", help="User id")) -> None:
    """Interactive chat session."""
    commands.chat(user_id=user)


@checkpoint_app.command("create")
def checkpoint_create_cmd(
    label: str = typer.Argument(..., help="Checkpoint label"),
    claim_ids: list[str] = typer.Argument(..., help="Claim ids to snapshot"),
    owner: str = typer.Option("cli", "--owner", help="Owner id"),
    description: str = typer.Option("", "--description"),
) -> None:
    """Snapshot a set of claims."""
    commands.checkpoint_create(owner_id=owner, label=label, claim_ids=claim_ids, description=description)


@checkpoint_app.command("list")
def checkpoint_list_cmd(owner: Optional[str] = typer.Option(None, "--owner")) -> None:
    """List checkpoints, newest first."""
    commands.checkpoint_list(owner_id=owner)


@checkpoint_app.command("rollback")
def checkpoint_rollback_cmd(
    checkpoint_id: str = typer.Argument(...),
    owner: str = typer.Option("cli", "--owner", help="Requesting owner id"),
) -> None:
    """Restore snapshotted claims and deprecate everything created since."""
    commands.checkpoint_rollback(checkpoint_id=checkpoint_id, owner_id=owner)


@checkpoint_app.command("delete")
def checkpoint_delete_cmd(
    checkpoint_id: str = typer.Argument(...),
    owner: str = typer.Option("cli", "--owner"),
) -> None:
    """Delete a checkpoint you own."""
    commands.checkpoint_delete(checkpoint_id=checkpoint_id, owner_id=owner)


@app.command("invalidate")
def invalidate_cmd(
    claim_id: str = typer.Argument(...),
    reason: str = typer.Option(..., "--reason", help="Why the claim is no longer valid"),
    by: str = typer.Option("cli", "--by", help="Invalidating agent"),
    cascade: bool = typer.Option(True, "--cascade/--no-cascade"),
    checkpoint_owner: Optional[str] = typer.Option(
        None, "--checkpoint-owner", help="Snapshot affected claims first, owned by this id"
    ),
) -> None:
    """Invalidate a claim and everything that depends on it."""
    commands.invalidate(
        claim_id=claim_id, by=by, reason=reason, cascade=cascade, checkpoint_owner=checkpoint_owner
    )


@facts_app.command("extract")
def facts_extract_cmd(
    text: str = typer.Argument(..., help="Message to extract facts from"),
    user: str = typer.Option("cli", "--user"),
    level: VerificationLevel = typer.Option(VerificationLevel.UNVERIFIED, "--level"),
) -> None:
    """Extract and store facts from a message."""
    commands.facts_extract(user_id=user, text=text, level=level)


@facts_app.command("list")
def facts_list_cmd(
    user: str = typer.Option("cli", "--user"),
    state: Optional[TrustState] = typer.Option(None, "--state"),
    fact_type: Optional[list[FactType]] = typer.Option(None, "--type"),
) -> None:
    """List stored facts for a user."""
    commands.facts_list(user_id=user, state=state, types=fact_type)


@facts_app.command("verify")
def facts_verify_cmd(
    fact_id: str = typer.Argument(...),
    reviewer: str = typer.Option("cli", "--reviewer"),
    reject: bool = typer.Option(False, "--reject", help="Reject instead of approve"),
) -> None:
    """Approve or reject a pending fact."""
    commands.facts_verify(fact_id=fact_id, reviewer_id=reviewer, approve=not reject)


@memory_app.command("inspect")
def memory_inspect_cmd(
    limit: int = typer.Option(10, min=1, max=500),
    owner: Optional[str] = typer.Option(None, "--owner"),
    kind: Optional[ClaimKind] = typer.Option(None, "--kind"),
    state: Optional[ClaimState] = typer.Option(None, "--state"),
    claim_id: Optional[str] = typer.Option(None, "--claim", help="Show one claim in full"),
) -> None:
    """Inspect ledger claims."""
    commands.memory_inspect(limit=limit, owner_id=owner, kind=kind, state=state, claim_id=claim_id)


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    commands.config_show()


@audit_app.command("tail")
def audit_tail_cmd(limit: int = typer.Option(20, min=1)) -> None:
    """Show the latest audit events."""
    commands.audit_tail(limit=limit)


app.add_typer(checkpoint_app, name="checkpoint")
app.add_typer(memory_app, name="memory")
app.add_typer(facts_app, name="facts")
app.add_typer(config_app, name="config")
app.add_typer(audit_app, name="audit")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()

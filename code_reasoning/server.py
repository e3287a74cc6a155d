"""Code Reasoning MCP Server.

FastMCP 2.0 implementation of a sequential thinking tool with branching
and revision support. The calling LLM does all reasoning; the server
tracks, validates and sequences the thoughts.

Tools:
1. code-reasoning - Submit one thought of a reasoning chain
2. thought_history - Read back thoughts, branches or the whole chain
3. reset_session - Discard the caller's chain
4. status - Server limits and session counts

Run with: code-reasoning [--debug] [--transport stdio|http|sse]
Or: python -m code_reasoning.server
"""

# Note: We intentionally do NOT use `from __future__ import annotations` here
# because it causes issues with Pydantic/FastMCP type resolution at decorator time.

import argparse
import asyncio
from datetime import timedelta
from typing import Any

import orjson
from dotenv import load_dotenv
from fastmcp import Context, FastMCP
from loguru import logger

from code_reasoning import __version__
from code_reasoning.config import get_config
from code_reasoning.prompts import PromptManager, PromptValueStore
from code_reasoning.tools.reasoning_session import (
    DEFAULT_SESSION_ID,
    get_session_manager,
    reset_session_manager,
)
from code_reasoning.utils.errors import CodeReasoningException, ToolExecutionError
from code_reasoning.utils.logging import configure_logging, default_log_file, log_context

# Load environment variables from .env file (for local development)
load_dotenv()

TRANSPORTS = ("stdio", "http", "sse")


def _json(data: dict[str, Any] | None, *, indent: bool = True) -> str:
    """Serialize data to JSON string with proper typing.

    Type-safe wrapper around orjson.dumps that returns str.
    """
    if data is None:
        data = {}
    opts = orjson.OPT_INDENT_2 if indent else 0
    result: bytes = orjson.dumps(data, option=opts, default=str)
    return result.decode("utf-8")


def _session_key(ctx: Context | None) -> str:
    """Per-client key for the reasoning session registry."""
    if ctx is None:
        return DEFAULT_SESSION_ID
    try:
        return ctx.session_id or DEFAULT_SESSION_ID
    except (AttributeError, RuntimeError):
        # No active request (direct calls in tests)
        return DEFAULT_SESSION_ID


# =============================================================================
# Automatic Session Cleanup
# =============================================================================

_cleanup_task: asyncio.Task[None] | None = None


async def _cleanup_stale_sessions() -> None:
    """Background task to drop sessions idle for too long."""
    session_config = get_config().session
    max_age = timedelta(minutes=session_config.max_idle_minutes)
    logger.info(
        f"Session cleanup task started (max_idle={session_config.max_idle_minutes}m, "
        f"interval={session_config.cleanup_interval_seconds}s)"
    )

    while True:
        try:
            await asyncio.sleep(session_config.cleanup_interval_seconds)

            removed = get_session_manager().cleanup_stale(max_age)
            if removed:
                logger.info(f"Cleaned up {len(removed)} stale sessions: {removed}")

        except asyncio.CancelledError:
            logger.info("Session cleanup task cancelled")
            break
        except Exception as e:
            logger.error(f"Error in cleanup task: {e}")
            # Continue running despite errors


def _start_cleanup_task() -> None:
    """Start the background cleanup task if not already running."""
    global _cleanup_task
    try:
        loop = asyncio.get_running_loop()
        if _cleanup_task is None or _cleanup_task.done():
            _cleanup_task = loop.create_task(_cleanup_stale_sessions())
            logger.debug("Cleanup task scheduled")
    except RuntimeError:
        # No running event loop - started by the first tool call instead
        logger.debug("No event loop available, cleanup task will start with server")


def _stop_cleanup_task() -> None:
    """Stop the background cleanup task."""
    global _cleanup_task
    if _cleanup_task is not None and not _cleanup_task.done():
        _cleanup_task.cancel()
        _cleanup_task = None
        logger.debug("Cleanup task stopped")


# =============================================================================
# Initialize FastMCP Server
# =============================================================================

mcp = FastMCP(
    name=get_config().server.name,
    instructions="""Code Reasoning MCP Server - sequential thinking with branches and revisions.

ARCHITECTURE: You (the LLM) do ALL reasoning. The server TRACKS, VALIDATES and SEQUENCES.

WORKFLOW:
1. code-reasoning(thought="...", thought_number=1, total_thoughts=5, next_thought_needed=true)
2. Keep submitting numbered thoughts; bump total_thoughts if scope changes
3. BRANCH: set branch_from_thought + branch_id to explore an alternative
4. REVISE: set is_revision=true + revises_thought to correct an earlier thought
5. Finish with next_thought_needed=false (set needs_more_thoughts=true if you may continue)

Other tools:
- thought_history(thought_number?, branch_id?) - read back your chain
- reset_session() - start over with an empty chain
- status() - limits and session counts

Rejected thoughts leave the chain unchanged; read "guidance" and "example" and resubmit.
""",
)

# =============================================================================
# Prompt Manager
# =============================================================================

_prompt_manager: PromptManager | None = None


def get_prompt_manager() -> PromptManager:
    """Get or create the prompt manager with its value store."""
    global _prompt_manager
    if _prompt_manager is None:
        store = PromptValueStore(get_config().prompts.values_file)
        _prompt_manager = PromptManager(value_store=store)
    return _prompt_manager


def _render_prompt(name: str, args: dict[str, Any]) -> str:
    """Render a prompt, surfacing argument problems as plain errors."""
    if not get_config().prompts.enabled:
        logger.warning(f"Prompt {name} requested while prompts are disabled")
        raise ValueError("Prompts are disabled (PROMPTS_ENABLED=false)")
    try:
        return get_prompt_manager().apply_prompt(name, args)
    except CodeReasoningException as e:
        logger.warning(f"Prompt {name} failed: {e}")
        raise ValueError(str(e)) from e


# =============================================================================
# TOOL 1: CODE-REASONING
# =============================================================================


@mcp.tool(name="code-reasoning")
async def code_reasoning_tool(
    thought: str,
    thought_number: int,
    total_thoughts: int,
    next_thought_needed: bool,
    is_revision: bool | None = None,
    revises_thought: int | None = None,
    branch_from_thought: int | None = None,
    branch_id: str | None = None,
    needs_more_thoughts: bool | None = None,
    ctx: Context | None = None,
) -> str:
    """🧠 A reflective problem-solving tool with sequential thinking.

    • Break down tasks into numbered thoughts that can BRANCH (🌿) or REVISE (🔄)
      until a conclusion is reached.
    • Always set 'next_thought_needed' = false when no further reasoning is needed.

    ✅ Recommended checklist every 3 thoughts:
    1. Need to BRANCH?   → set 'branch_from_thought' + 'branch_id'.
    2. Need to REVISE?   → set 'is_revision' + 'revises_thought'.
    3. Scope changed?    → bump 'total_thoughts'.

    ✍️ End each thought with: "What am I missing?"

    Args:
        thought: Current reasoning step
        thought_number: Position of this thought (1-based)
        total_thoughts: Current estimate of the chain's length
        next_thought_needed: False when the chain is complete
        is_revision: True if this thought revises an earlier one
        revises_thought: Number of the thought being revised
        branch_from_thought: Fork point when opening a branch
        branch_id: Identifier of the branch this thought belongs to
        needs_more_thoughts: Keep the option to continue after finishing

    Returns:
        JSON with the echoed chain state, or a rejection with guidance

    """
    session_id = _session_key(ctx)
    _start_cleanup_task()

    payload: dict[str, Any] = {
        "thought": thought,
        "thought_number": thought_number,
        "total_thoughts": total_thoughts,
        "next_thought_needed": next_thought_needed,
    }
    optional = {
        "is_revision": is_revision,
        "revises_thought": revises_thought,
        "branch_from_thought": branch_from_thought,
        "branch_id": branch_id,
        "needs_more_thoughts": needs_more_thoughts,
    }
    payload.update({k: v for k, v in optional.items() if v is not None})

    with log_context(session_id=session_id, tool_name="code-reasoning"):
        try:
            result = get_session_manager().process_thought(session_id, payload)
        except Exception as e:
            error = ToolExecutionError("code-reasoning", str(e))
            logger.error(f"Thought processing failed: {e}")
            return _json(error.to_dict(), indent=False)

    if ctx:
        if result["status"] == "processed":
            if result.get("warnings"):
                await ctx.warning(
                    f"Thought {thought_number} accepted after completion: "
                    f"{', '.join(result['warnings'])}"
                )
        else:
            await ctx.warning(f"Thought rejected ({result['kind']}): {result['error']}")

    return _json(result)


# =============================================================================
# TOOL 2: THOUGHT HISTORY
# =============================================================================


@mcp.tool
async def thought_history(
    thought_number: int | None = None,
    branch_id: str | None = None,
    ctx: Context | None = None,
) -> str:
    """Read back thoughts from your reasoning chain.

    Args:
        thought_number: Return the most recent thought with this number
        branch_id: Return the thoughts of this branch

    Returns:
        JSON with the requested thought(s); the whole chain if no filter given.
        Passing both filters is an error.

    """
    if thought_number is not None and branch_id is not None:
        return _json({"error": "Pass either thought_number or branch_id, not both"}, indent=False)

    session_id = _session_key(ctx)
    try:
        manager = get_session_manager()
        if not manager.session_exists(session_id):
            return _json({"error": "No reasoning session yet: submit a thought first"}, indent=False)

        with manager.session(session_id) as session:
            if branch_id is not None:
                branch = session.branch(branch_id)
                if branch is None:
                    return _json({"error": f"Branch not found: {branch_id}"}, indent=False)
                return _json(branch)

            if thought_number is not None:
                record = session.thought(thought_number)
                if record is None:
                    return _json({"error": f"Thought not found: {thought_number}"}, indent=False)
                return _json(record)

            result = session.history()
            result["current"] = session.current()
            return _json(result)

    except Exception as e:
        error = ToolExecutionError("thought_history", str(e))
        logger.error(f"Thought history failed: {e}")
        return _json(error.to_dict(), indent=False)


# =============================================================================
# TOOL 3: RESET SESSION
# =============================================================================


@mcp.tool
async def reset_session(ctx: Context | None = None) -> str:
    """Discard your reasoning chain; the next thought starts a new one.

    Returns:
        JSON confirming whether a chain was discarded

    """
    session_id = _session_key(ctx)
    with log_context(session_id=session_id, tool_name="reset_session"):
        try:
            removed = get_session_manager().reset(session_id)
        except Exception as e:
            error = ToolExecutionError("reset_session", str(e))
            logger.error(f"Reset session failed: {e}")
            return _json(error.to_dict(), indent=False)

    if ctx:
        await ctx.info("Reasoning session reset" if removed else "No reasoning session to reset")
    return _json({"status": "reset", "had_session": removed}, indent=False)


# =============================================================================
# TOOL 4: STATUS
# =============================================================================


@mcp.tool
async def status(ctx: Context | None = None) -> str:
    """Get server status, limits and your session summary.

    Returns:
        JSON with server info, configured limits and session counts

    """
    try:
        config = get_config()
        manager = get_session_manager()
        session_id = _session_key(ctx)

        current_session: dict[str, Any] | None = None
        if manager.session_exists(session_id):
            with manager.session(session_id) as session:
                current_session = session.summary()

        limits = manager.config
        return _json(
            {
                "server": {
                    "name": config.server.name,
                    "version": __version__,
                    "transport": config.server.transport,
                    "tools": ["code-reasoning", "thought_history", "reset_session", "status"],
                    "prompts": (
                        [p.name for p in get_prompt_manager().list_prompts()]
                        if config.prompts.enabled
                        else []
                    ),
                },
                "limits": {
                    "max_thought_length": limits.max_thought_length,
                    "max_thoughts": limits.max_thoughts,
                    "timeout_ms": limits.timeout_ms,
                    "debug": limits.debug,
                },
                "sessions": {
                    "active": manager.session_count(),
                    "max_idle_minutes": config.session.max_idle_minutes,
                },
                "session": current_session,
            }
        )

    except Exception as e:
        error = ToolExecutionError("status", str(e))
        logger.error(f"Status failed: {e}")
        return _json(error.to_dict(), indent=False)


# =============================================================================
# PROMPTS
# =============================================================================


@mcp.prompt(name="bug-analysis", description="Systematic approach to analyzing and fixing bugs")
def bug_analysis_prompt(
    bug_behavior: str,
    expected_behavior: str,
    affected_components: str,
    reproduction_steps: str | None = None,
    working_directory: str | None = None,
) -> str:
    return _render_prompt(
        "bug-analysis",
        {
            "bug_behavior": bug_behavior,
            "expected_behavior": expected_behavior,
            "affected_components": affected_components,
            "reproduction_steps": reproduction_steps,
            "working_directory": working_directory,
        },
    )


@mcp.prompt(
    name="feature-planning",
    description="Structured approach to planning new feature implementation",
)
def feature_planning_prompt(
    problem_statement: str,
    target_users: str,
    success_criteria: str | None = None,
    affected_components: str | None = None,
    working_directory: str | None = None,
) -> str:
    return _render_prompt(
        "feature-planning",
        {
            "problem_statement": problem_statement,
            "target_users": target_users,
            "success_criteria": success_criteria,
            "affected_components": affected_components,
            "working_directory": working_directory,
        },
    )


@mcp.prompt(name="code-review", description="Comprehensive template for code review")
def code_review_prompt(
    code: str,
    requirements: str | None = None,
    language: str | None = None,
    working_directory: str | None = None,
) -> str:
    return _render_prompt(
        "code-review",
        {
            "code": code,
            "requirements": requirements,
            "language": language,
            "working_directory": working_directory,
        },
    )


@mcp.prompt(name="refactoring-plan", description="Structured approach to code refactoring")
def refactoring_plan_prompt(
    current_issues: str,
    goals: str,
    working_directory: str | None = None,
) -> str:
    return _render_prompt(
        "refactoring-plan",
        {
            "current_issues": current_issues,
            "goals": goals,
            "working_directory": working_directory,
        },
    )


@mcp.prompt(
    name="architecture-decision",
    description="Framework for making and documenting architecture decisions",
)
def architecture_decision_prompt(
    decision_context: str,
    constraints: str | None = None,
    options: str | None = None,
    working_directory: str | None = None,
) -> str:
    return _render_prompt(
        "architecture-decision",
        {
            "decision_context": decision_context,
            "constraints": constraints,
            "options": options,
            "working_directory": working_directory,
        },
    )


# =============================================================================
# SERVER ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Command-line options; environment variables supply the defaults."""
    server_config = get_config().server
    parser = argparse.ArgumentParser(
        prog="code-reasoning",
        description="Code Reasoning MCP server: sequential thinking with branches and revisions.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging",
    )
    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default=server_config.transport if server_config.transport in TRANSPORTS else "stdio",
        help="MCP transport (default: %(default)s)",
    )
    parser.add_argument("--host", default=server_config.host, help="Bind host for http/sse")
    parser.add_argument(
        "--port", type=int, default=server_config.port, help="Bind port for http/sse"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Run the Code Reasoning MCP server."""
    args = build_parser().parse_args(argv)
    config = get_config()

    debug = args.debug or config.reasoning.debug
    log_file: Any = config.logging.file or None
    if log_file is None and config.logging.to_file:
        log_file = default_log_file(config.prompts.config_dir)
    configure_logging(config.logging.level, config.logging.format, log_file, debug=debug)

    reasoning_config = config.reasoning.with_overrides(debug=debug)
    reset_session_manager(reasoning_config)

    logger.info(
        f"Starting {config.server.name} v{__version__} (transport: {args.transport})",
        max_thoughts=reasoning_config.max_thoughts,
        max_thought_length=reasoning_config.max_thought_length,
        debug=debug,
    )

    try:
        if args.transport == "stdio":
            mcp.run(transport="stdio")
        elif args.transport == "http":
            mcp.run(transport="streamable-http", host=args.host, port=args.port)
        else:
            mcp.run(transport="sse", host=args.host, port=args.port)
    finally:
        _stop_cleanup_task()


if __name__ == "__main__":
    main()

"""Console output formatting utilities for devlift."""

from __future__ import annotations

import sys
from typing import Optional, Sequence


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(
        self,
        project: str,
        directory: str,
        step_count: int,
    ) -> None:
        """Print run start information."""
        print("\nSETUP STARTED")
        print(f"Project: {project}")
        print(f"Directory: {directory}")
        print(f"Steps: {step_count}")
        print()

    def print_plan(self, plan: Sequence[str]) -> None:
        """Print the computed execution order."""
        print("PLAN: " + " -> ".join(plan) if plan else "PLAN: (no setup steps)")

    def print_step(self, name: str, command: Optional[str] = None) -> None:
        """Print step start message."""
        print(f"\nSTEP: {name}")
        if command:
            print(f"  $ {command}")

    def print_choice(self, name: str, selected: str, prespecified: bool = False) -> None:
        """Print the branch taken by a choice step."""
        how = "pre-specified" if prespecified else "selected"
        print(f"CHOICE: {name} -> {selected} ({how})")

    def print_skipped(self, name: str, reason: str) -> None:
        """Print step skipped message."""
        print(f"STATUS: skipped ({reason})")

    def print_success(self, name: str) -> None:
        """Print success message."""
        print("STATUS: success")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        print(f"STEP FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            print(f"Error: {error_line}")

    def print_message(self, content: str) -> None:
        """Print a post-setup message."""
        print(f"\n{content.rstrip()}")

    def print_results(self, results: dict[str, str]) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        if not results:
            print("  (nothing to run)")
        for step, status in results.items():
            status_display = status.upper() if status != "ok" else "SUCCESS"
            print(f"  {step}: {status_display}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_warning(self, message: str) -> None:
        print(f"Warning: {message}")

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console

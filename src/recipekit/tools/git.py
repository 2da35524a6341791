from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from ..core.Exceptions import GitCommandError, ToolInvocationError
from .toolify import tool

logger = logging.getLogger(__name__)

__all__ = ["GitTools", "condense_diff"]

DEFAULT_DIFF_ARGS: Tuple[str, ...] = ("--no-color", "--unified=0", "--diff-algorithm=minimal")

# A modified file keeps at most this many content lines (half from each end).
_MAX_FILE_LINES = 20

_FAILURE_HINTS = (
    (("nothing to commit",), "Hint: Nothing to commit (no staged files?). Run `git add -A`."),
    (("pre-commit",), "Hint: A pre-commit hook failed. Try fixing issues or run with noVerify=true."),
    (
        ("gpg", "signing"),
        "Hint: GPG signing failed. Configure GPG or disable signing with `git config commit.gpgsign false`.",
    ),
    (
        ("user.name", "user.email"),
        "Hint: Missing user identity. Run `git config user.name 'Your Name'` and "
        "`git config user.email you@example.com`.",
    ),
)


def condense_diff(diff: str) -> str:
    """Summarize a unified diff per file.

    New and deleted files collapse to one line. Modified files get a
    ``path (+added -deleted)`` header followed by their diff lines, trimmed to
    the first and last ten when longer than twenty.
    """
    result: List[str] = []
    current: Optional[str] = None
    is_new = is_deleted = False
    added = deleted = 0
    content: List[str] = []

    def flush() -> None:
        if current is None:
            return
        if is_new:
            result.append(f"new file: {current}")
        elif is_deleted:
            result.append(f"deleted file: {current}")
        else:
            result.append(f"{current} (+{added} -{deleted})")
            if len(content) <= _MAX_FILE_LINES:
                result.extend(content)
            else:
                half = _MAX_FILE_LINES // 2
                result.extend(content[:half])
                result.append(f"... ({len(content) - _MAX_FILE_LINES} lines omitted) ...")
                result.extend(content[-half:])

    for line in diff.splitlines():
        if line.startswith("diff --git"):
            flush()
            _, sep, tail = line.rpartition(" b/")
            current = tail if sep and tail.strip() else None
            is_new = is_deleted = False
            added = deleted = 0
            content = [line]
            continue
        if line.startswith("new file mode"):
            is_new = True
            continue
        if line.startswith("deleted file mode"):
            is_deleted = True
            continue

        if line.startswith("+") and not line.startswith("+++"):
            added += 1
        elif line.startswith("-") and not line.startswith("---"):
            deleted += 1
        elif not line.strip():
            continue
        if not (is_new or is_deleted):
            content.append(line)

    flush()
    return "\n".join(result)


class GitTools:
    """Git operations for commit-message style recipes.

    Every command runs in ``cwd`` (the process working directory when not
    given). A non-zero exit status raises :class:`GitCommandError` carrying
    the command output.
    """

    def __init__(self, cwd: Union[str, Path, None] = None, git: str = "git") -> None:
        self.cwd = Path(cwd) if cwd is not None else None
        self.git = git

    # ------------------------------------------------------------------ #
    # Tools
    # ------------------------------------------------------------------ #
    @tool("stagedDiff", "Condensed unified diff of staged changes (git diff --cached)")
    def staged_diff(self, args: Optional[List[str]] = None) -> str:
        if not args:
            args = list(DEFAULT_DIFF_ARGS)
        elif isinstance(args, str):
            args = [args]
        full = self._run(["diff", "--cached", *[str(a) for a in args]])
        return condense_diff(full)

    @tool("status", "Concise git status (-sb)")
    def status(self) -> str:
        return self._run(["status", "-sb"])

    @tool("branch", "Current branch name")
    def branch(self) -> str:
        return self._run(["rev-parse", "--abbrev-ref", "HEAD"]).strip()

    @tool("commit", "Write .git/COMMIT_EDITMSG and run git commit -F -")
    def commit(
        self,
        message: str,
        signoff: bool = False,
        noVerify: bool = False,
        skipEditmsg: bool = False,
    ) -> str:
        if not message or not message.strip():
            raise ToolInvocationError("commit: message must not be empty")

        if not skipEditmsg:
            editmsg = self._git_dir() / "COMMIT_EDITMSG"
            editmsg.write_text(message, encoding="utf-8")

        if not self._run(["diff", "--cached", "--name-only"]).strip():
            raise GitCommandError("No staged changes. Run `git add` first.")

        cmd = ["commit"]
        if noVerify:
            cmd.append("--no-verify")
        if signoff:
            cmd.append("--signoff")
        cmd += ["-F", "-"]
        return self._run(cmd, stdin=message, hints=True).strip()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _git_dir(self) -> Path:
        raw = self._run(["rev-parse", "--git-dir"]).strip()
        path = Path(raw)
        if not path.is_absolute():
            path = (self.cwd or Path.cwd()) / path
        return path

    def _run(self, args: Sequence[str], stdin: Optional[str] = None, hints: bool = False) -> str:
        cmd = [self.git, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                cwd=self.cwd,
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as exc:
            raise GitCommandError(f"Could not run {' '.join(cmd)}: {exc}") from exc

        if proc.returncode != 0:
            output = (proc.stdout or "").strip()
            lines = [f"Command failed ({proc.returncode}): {' '.join(cmd)}"]
            if output:
                lines += ["Output:", output]
            found = _hints_for(output) if hints else []
            if found:
                lines += [""] + found
            raise GitCommandError("\n".join(lines))
        return proc.stdout or ""


def _hints_for(output: str) -> List[str]:
    lowered = output.lower()
    found = [hint for needles, hint in _FAILURE_HINTS if any(n in lowered for n in needles)]
    if "merge" in lowered and "in progress" in lowered:
        found.append(
            "Hint: Merge/rebase in progress. Resolve conflicts or run `git merge --continue` / `git rebase --continue`."
        )
    return found

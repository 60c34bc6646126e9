"""Fork-point anchors for stacked branches.

An anchor is the ref ``refs/bases/<child>`` pointing at the parent's tip as of
the moment the child was stacked or last restacked. Being a ref, it keeps that
commit alive even after the parent is amended or rebased, and it is the
boundary for ``git rebase --onto``.
"""

from git_repos import output
from git_repos.operations.executor import GitExecutor


class ForkPointTracker:
    """Record and resolve fork points in one repository's object store."""

    def __init__(self, executor: GitExecutor):
        self.executor = executor

    def record(self, child: str, commit: str) -> None:
        self.executor.set_base_ref(child, commit)

    def get(self, child: str) -> str | None:
        return self.executor.get_base_ref(child)

    def clear(self, child: str) -> None:
        self.executor.delete_base_ref(child)

    def record_parent_tip(self, child: str, parent: str) -> bool:
        """Point the anchor at the parent's current tip.

        Returns False, and leaves the anchor untouched, if ``parent`` no
        longer resolves.
        """
        tip = self.executor.rev_parse(parent)
        if tip is None:
            return False
        self.record(child, tip)
        return True

    def compute_fallback(self, child: str, parent: str) -> str | None:
        """Derive the fork point from history alone.

        Only correct while ``parent`` has not been rewritten since ``child``
        diverged from it.
        """
        parent_tip = self.executor.rev_parse(parent)
        if parent_tip is None or self.executor.rev_parse(child) is None:
            return None

        commits = self.executor.get_commits_between(parent, child)
        if not commits:
            return parent_tip
        return self.executor.rev_parse(f"{commits[0]}^")

    def resolve(self, child: str, parent: str) -> str | None:
        """Prefer the stored anchor; fall back to history with a warning."""
        anchor = self.get(child)
        if anchor is not None:
            return anchor

        fallback = self.compute_fallback(child, parent)
        if fallback is not None:
            output.warning(
                f'No fork point recorded for "{child}"; derived one from '
                f'"{parent}". This is only correct if "{parent}" was not '
                "rewritten since the branch was stacked."
            )
        return fallback

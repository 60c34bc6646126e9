from git_repos.operations.config import RepoEntry, ReposConfig, ReposConfigManager, StackEntry
from git_repos.operations.config import *  # noqa: F403, F401

from .executor import GitExecutor, RebaseResult, WorktreeInfo
from .fork_point import ForkPointTracker
from .restack import Restacker, RestackResult
from .collapse import Collapser
from .unstack import Unstacker
from .squash import Squasher, SquashOptions
from .cleanup import Cleaner
from .worktrees import WorktreeManager
from .repos import RepoTracker

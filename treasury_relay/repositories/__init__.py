from . import user_repository as user_repo
from . import payment_link_repository as link_repo
from . import balance_repository as balance_repo
from . import payment_repository as payment_repo

__all__ = ["user_repo", "link_repo", "balance_repo", "payment_repo"]

"""页面访问的角色判定与跳转规则。

- 未登录 -> ``/login``
- 角色不符 -> ``/``
- ``/`` -> 对应角色的仪表盘
"""

from typing import Optional

from classgrade.models import User, UserRole

LOGIN_PATH = "/login"
HOME_PATH = "/"
DASHBOARD_PATHS = {
    UserRole.STUDENT: "/dashboard/student",
    UserRole.TEACHER: "/dashboard/teacher",
}


def landing_path(user: Optional[User]) -> str:
    if user is None:
        return LOGIN_PATH
    return DASHBOARD_PATHS[user.role]


def page_redirect(user: Optional[User], required_role: UserRole) -> Optional[str]:
    """返回需要跳转的路径；允许访问时返回 ``None``。"""

    if user is None:
        return LOGIN_PATH
    if user.role != required_role:
        return HOME_PATH
    return None

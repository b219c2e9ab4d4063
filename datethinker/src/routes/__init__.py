"""
Routes package for the DateThinker API
Blueprint-based modular route organization
"""


def register_blueprints(app):
    """
    Register all route blueprints with the Quart app

    Admin routes (health, metrics) first, then the venue APIs.
    """
    from .admin import register as register_admin
    from .media import register as register_media
    from .search import register as register_search
    from .explore import register as register_explore
    from .details import register as register_details

    register_admin(app)
    register_media(app)
    register_search(app)
    register_explore(app)
    register_details(app)

# demo_scheduling/crud/__init__.py

from .crud_demo_session import demo_session
from .crud_demo_signup import demo_signup

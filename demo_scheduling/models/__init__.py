# demo_scheduling/models/__init__.py

from .demo_session import DemoSession
from .demo_signup import DemoSignup

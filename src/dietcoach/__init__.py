"""Diet-rule compliance and template-based meal plan generation.

Two engines live in this package:

- ``dietcoach.rules``: evaluates ingredients against a diet profile's rules
  in four ordered phases (DROP, FORCE, LIMIT, PASS).
- ``dietcoach.generator``: synthesizes multi-day meal plans from whitelisted
  ingredient pools and recipe templates under variety caps.

Storage, nutrition data and usage history are supplied by the caller; the
SQLite providers in ``dietcoach.db`` are one implementation of them.
"""

__version__ = "0.1.0"

"""Allow ``python -m code_reasoning``."""

from code_reasoning.server import main

main()

"""
Command-line entry points.

Each module exposes ``parse_args(argv)`` and ``main(argv)`` and is
installed as a console script (``sf-deploy-local``, ``sf-pull-assets``,
``sf-trigger-deploy`` and so on).
"""

"""
Feature modules. Each module owns its models, repository, service and router.
"""

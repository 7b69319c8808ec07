"""Core reconciliation logic.

Module Structure:
    - appmixer/       : Appmixer API client, entity reconcilers, deletion poller
    - reconciler.py   : Capability interface shared by the entity reconcilers
    - rbac.py         : Scope checks consulted before privileged mutations
    - validators.py   : Local validation (passwords, account credentials)

Usage Pattern:
    These modules are NOT auto-imported; import explicitly when needed:
        from appmixer_sync.core.appmixer import AppmixerClient, UserService
        from appmixer_sync.core.rbac import has_scope
        from appmixer_sync.core.validators import validate_password
"""

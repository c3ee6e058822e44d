"""
Permission management feature module.

Role-based access control: permissions are (resource, action) pairs bundled
into roles; users hold roles. super_admin bypasses every check.
"""

"""
Domain services. Each service owns its transaction boundaries through
BaseService.unit_of_work() and delegates data access to repositories.
"""

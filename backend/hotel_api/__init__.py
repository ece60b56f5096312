"""
Hotel order API: order lifecycle, tenant isolation and notification fan-out.
"""

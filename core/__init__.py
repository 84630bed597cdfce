"""Core module - records, code tables and shared services of the integration.

This module contains the MES and ERP record models, the code tables, the
eligibility rules, the message archive, the status reporter and the
observability stack.

Payload translation belongs in /translators/, outbound calls in /connectors/.
"""

__version__ = "0.1.0"

"""govassets — federated asset registry with two-stage approval.

Ministries register assets through bounded uploader and approver seats;
every record passes approver and ministry-admin review before it is
final, and every privileged transition lands in a hash-chained audit log.
"""

__version__ = "0.1.0"

"""
Adapter layer for the invoice mover.

Capability interfaces (object store, message queue, tracking store) and their
S3, SQS and DynamoDB implementations.
"""

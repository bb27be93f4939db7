"""Citus Cluster Operator.

Kubernetes controller for the ``clusters.citus.dev`` custom resource:
 - registers the CRD and waits until it is established
 - watches citus clusters and the CloudNativePG clusters they own
 - server-side applies one CNPG cluster per citus cluster and reports its
   ready node count back in the citus cluster status
 - retries failed reconciles after a short flat delay and resyncs
   every cluster periodically

Run it with ``python -m citus_operator`` or the ``citus-operator`` script.
"""

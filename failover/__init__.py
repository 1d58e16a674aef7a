"""Failover pool reconciler.

Watches a master/slave pair of workloads co-located on cluster nodes:
 - nodes whose master pod is ready join the failover pool (a node label)
 - nodes whose master pod or kubelet goes unhealthy leave the pool
 - on leaving, the slave deployment on that node is rollout-restarted so the
   scheduler places it on a node that is still in the pool

All state is re-derived from the cluster on every pass.
"""

"""Sequential Redeploy (seqredeploy).

Small HTTP-triggered service that rolls a clustered service's containers one at a time:
 - coalescing trigger (one run in flight, at most one deferred rerun)
 - lifecycle watcher over the cluster event feed
 - bounded polling health gate before moving to the next container

Docker is the only cluster backend; everything else is cluster-neutral.
"""

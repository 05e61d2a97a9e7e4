"""
Dask-based execution helpers

Per-file diboson analyses run as futures on a local, thread-based
Dask cluster; results come back in input-file order so that the
partial runs can be merged deterministically.
"""

import logging
from contextlib import contextmanager

from dask.distributed import Client, LocalCluster

logger = logging.getLogger(__name__)


@contextmanager
def local_client(n_workers=4, threads_per_worker=1):
    """
    Start a LocalCluster and yield a connected client.

    Both the client and the cluster are shut down on exit.

    Parameters
    ----------
    n_workers : int
        Number of workers to start.
    threads_per_worker : int
        Number of threads per worker.
    """
    cluster = LocalCluster(
        n_workers=n_workers,
        threads_per_worker=threads_per_worker,
        processes=False,
        dashboard_address=None,
    )
    client = Client(cluster)
    try:
        yield client
    finally:
        client.close()
        cluster.close()


def run_on_client(client, filenames, process_function, config):
    """
    Run ``process_function(filename, config=config)`` for every file.

    Parameters
    ----------
    client : dask.distributed.Client
        Active Dask client.
    filenames : list of str
        ROOT files to process.
    process_function : callable
        Per-file analysis, returning its partial result or None.
    config : dict
        Configuration dictionary passed to every call.

    Returns
    -------
    list
        One result per file, in the order of ``filenames``.
    """
    futures = client.map(process_function, filenames, config=config, pure=False)
    logger.info("Submitted %d files to %s", len(futures), client)
    return client.gather(futures)

"""Query workspace: mocked SPARQL execution, history and saved queries.

There is no triple store behind the portal. Every query is answered from a
small built-in demo graph, so the payload has the real SPARQL JSON results
shape without depending on what the user typed.
"""
import json
import logging
import time

from rdflib import Graph, Literal, Namespace, RDF

from sparql_portal.errors import DataStoreError
from sparql_portal.services.access import can

logger = logging.getLogger(__name__)

EX = Namespace('http://example.org/')

RESULTS_QUERY = """
SELECT ?subject ?predicate ?object
WHERE { ?subject ?predicate ?object }
ORDER BY ?subject ?predicate
"""

DEMO_QUERY = 'SELECT ?person WHERE { ?person a <http://example.org/Person> } ORDER BY ?person LIMIT 5'


def _results_graph():
    g = Graph()
    g.add((EX.resource1, RDF.type, EX.Type))
    g.add((EX.resource1, EX.property, Literal('Property Value')))
    g.add((EX.resource2, EX.relatedTo, EX.resource1))
    return g


def _demo_graph():
    g = Graph()
    for name in ('person1', 'person2', 'person3'):
        g.add((EX[name], RDF.type, EX.Person))
    return g


def _run(graph, query):
    """Evaluate ``query`` and return the SPARQL JSON results document."""
    return json.loads(graph.query(query).serialize(format='json'))


def demo_payload():
    """Limited sample served to visitors without a session."""
    return {
        'message': 'Demo data for guest users',
        'data': {
            'query': DEMO_QUERY,
            'results': _run(_demo_graph(), DEMO_QUERY),
        },
    }


def execute_query(store, user, query):
    """Answer ``query`` with the mocked results and record it in the user's history."""
    started = time.perf_counter()
    results = _run(_results_graph(), RESULTS_QUERY)
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    if user is not None and can(user['role'], 'queries:run'):
        result = store.table('query_history').insert({
            'user_id': user['id'],
            'query_content': {'sparql': query},
            'results': results,
            'execution_time': elapsed_ms,
            'status': 'completed',
        }).execute()
        if result.error:
            raise DataStoreError(result.error.message)
        logger.debug("Recorded query for %s in %d ms", user['id'], elapsed_ms)

    return {
        'message': 'Query executed successfully',
        'query': query,
        'results': results,
    }


def save_query(store, user_id, title, query, description=None, is_public=False):
    result = store.table('saved_queries').insert({
        'user_id': user_id,
        'title': title,
        'description': description or None,
        'query_content': {'sparql': query},
        'is_public': is_public,
    }).execute()
    if result.error:
        raise DataStoreError(result.error.message)
    return result.data[0]


def recent_history(store, user_id, limit=5):
    result = store.table('query_history').select().eq('user_id', user_id).order('created_at').limit(limit).execute()
    if result.error:
        raise DataStoreError(result.error.message)
    return result.data


def recent_saved(store, user_id, limit=5):
    result = store.table('saved_queries').select().eq('user_id', user_id).order('created_at').limit(limit).execute()
    if result.error:
        raise DataStoreError(result.error.message)
    return result.data

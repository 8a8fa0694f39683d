"""SPARQL query endpoint (mocked results) and saved queries."""
from flask import Blueprint, current_app, g, jsonify, request

from sparql_portal.backend.store import get_store
from sparql_portal.errors import PortalError
from sparql_portal.routes.auth import permission_required
from sparql_portal.services.access import can
from sparql_portal.services import queries

sparql_bp = Blueprint('sparql', __name__)


@sparql_bp.route('/api/rdf', methods=['GET'])
def run_query():
    """Run a query from the query string. Visitors without a session get demo data."""
    if g.auth.session is None:
        return jsonify(queries.demo_payload())

    query = request.args.get('query', '')
    try:
        return jsonify(queries.execute_query(get_store(), g.auth.user, query))
    except PortalError:
        current_app.logger.exception('Error executing query')
        return jsonify(error='Failed to execute query'), 500


@sparql_bp.route('/api/rdf', methods=['POST'])
@permission_required('queries:run', api=True)
def run_and_save_query():
    body = request.get_json(silent=True) or {}
    query = body.get('query')
    if not query:
        return jsonify(error='No query provided'), 400

    store = get_store()
    user = g.auth.user
    try:
        outcome = queries.execute_query(store, user, query)
        if body.get('saveQuery') and body.get('title'):
            if not can(user['role'], 'queries:save'):
                return jsonify(error='Forbidden. Insufficient permissions.'), 403
            queries.save_query(store, user['id'], body['title'], query, body.get('description'))
    except PortalError:
        current_app.logger.exception('Error executing query')
        return jsonify(error='Failed to execute query'), 500

    return jsonify(message=outcome['message'], results=outcome['results'])

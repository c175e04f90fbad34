from flask import Blueprint, request, jsonify
import os
import time
import tempfile
import logging

from config.settings import UPLOAD_DIR, ALLOWED_EXTENSIONS, PROFILES, build_config, get_profile
from reconcile.run import compare_files
from reconcile.utils.errors import ConfigError, SpreadsheetReadError, ComparisonFailure

logger = logging.getLogger(__name__)

compare_bp = Blueprint('compare', __name__)

# Options a request may override through form fields or the query string
OVERRIDE_FIELDS = (
    'match_key', 'provider_match', 'missing_cpt_granularity', 'name_threshold',
    'provider_threshold', 'scorer', 'check_diagnosis', 'duplicate_key',
)


def _error(error, details, status):
    return jsonify({'success': False, 'error': error, 'details': details}), status


def _request_overrides():
    return {name: request.values.get(name) for name in OVERRIDE_FIELDS if request.values.get(name)}


def _save_upload(file):
    """Write an uploaded file to UPLOAD_DIR under a timestamped name and return its path."""
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    ext = os.path.splitext(file.filename)[1].lower()
    tmp_file = tempfile.NamedTemporaryFile(delete=False, dir=UPLOAD_DIR,
                                           prefix=f"{int(time.time() * 1000)}_", suffix=ext)
    tmp_file_path = tmp_file.name
    tmp_file.close()
    file.save(tmp_file_path)
    logger.debug(f"Saved upload {file.filename} to {tmp_file_path}")
    return tmp_file_path


def _cleanup(paths):
    for path in paths:
        try:
            if os.path.exists(path):
                os.unlink(path)
        except OSError as e:
            logger.warning(f"Failed to delete temporary file {path}: {e}")


def run_profile(profile_name):
    """
    Runs one comparison for the uploaded pair of files.

    Returns:
        (report, None) on success or (None, error_response)
    """
    try:
        profile = get_profile(profile_name)
    except ConfigError as e:
        return None, _error('Unknown profile', str(e), 404)

    primary = request.files.get(profile.primary_field)
    secondary = request.files.get(profile.secondary_field)
    if not primary or not secondary or not primary.filename or not secondary.filename:
        logger.warning(f"Upload for '{profile_name}' is missing a file")
        return None, _error('Both files are required',
                            f"Expected '{profile.primary_field}' and '{profile.secondary_field}'", 400)

    for file in (primary, secondary):
        if os.path.splitext(file.filename)[1].lower() not in ALLOWED_EXTENSIONS:
            logger.warning(f"Invalid file type: {file.filename}")
            return None, _error('Invalid file type',
                                f"Expected one of {', '.join(sorted(ALLOWED_EXTENSIONS))}. Received: {file.filename}",
                                400)

    saved = []
    try:
        config = build_config(profile_name, **_request_overrides())
        saved.append(_save_upload(primary))
        saved.append(_save_upload(secondary))
        logger.info(f"Comparing {primary.filename} against {secondary.filename} ({profile_name})")
        return compare_files(saved[0], saved[1], config), None
    except ConfigError as e:
        return None, _error('Invalid configuration', str(e), 400)
    except (SpreadsheetReadError, ComparisonFailure) as e:
        logger.error(f"Comparison failed for '{profile_name}': {e}")
        return None, _error('Error comparing Excel files', str(e), 500)
    except Exception as e:
        logger.error(f"Unexpected error during comparison: {str(e)}", exc_info=True)
        return None, _error('Server Error', str(e), 500)
    finally:
        _cleanup(saved)


@compare_bp.route('/compare/<profile_name>', methods=['POST'])
def compare_profile(profile_name):
    report, error = run_profile(profile_name)
    if error:
        return error
    return jsonify({
        'success': True,
        'message': 'Comparison complete',
        'profile': profile_name,
        'results': report.to_dict(),
    }), 200


@compare_bp.route('/compare', methods=['POST'])
def compare_epic():
    return compare_profile('epic')


@compare_bp.route('/hospital/compare', methods=['POST'])
def compare_hospital():
    return compare_profile('hospital')


@compare_bp.route('/pmd/compare-missing-cpts', methods=['POST'])
def compare_missing_cpts():
    report, error = run_profile('pmd')
    if error:
        return error
    records = [r.to_dict() for r in report.mistakes if r.missing_codes]
    return jsonify({
        'success': True,
        'message': 'Missing CPT comparison complete',
        'stats': {'missing_count': len(records)},
        'missing_records': records,
    }), 200


@compare_bp.route('/duplicate/find-duplicates', methods=['POST'])
def find_duplicates():
    report, error = run_profile('duplicate')
    if error:
        return error
    records = [r.to_dict() for r in report.duplicates]
    return jsonify({
        'success': True,
        'message': 'Duplicate records detection complete',
        'stats': {'total': len(records)},
        'records': records,
    }), 200


@compare_bp.route('/profiles', methods=['GET'])
def list_profiles():
    """Profiles with their effective options and expected upload fields."""
    try:
        profiles = {}
        for name, profile in PROFILES.items():
            profiles[name] = {
                'primary_field': profile.primary_field,
                'secondary_field': profile.secondary_field,
                'options': build_config(name).describe(),
            }
        return jsonify({'success': True, 'profiles': profiles}), 200
    except ConfigError as e:
        return _error('Invalid configuration', str(e), 500)

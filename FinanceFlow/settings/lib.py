"""Settings library for store, export and authentication configurations.

Provides:
    - Schema validation and enforcement for config.json structure.
    - Loading, saving, reverting, and managing application settings.
    - Constants for the configuration schema.
"""

import json
import logging
import pathlib
import shutil
from typing import Dict, Any, Optional, List

from PySide6 import QtCore

from ..status import status

app_name: str = 'FinanceFlow'

DEFAULT_DATABASE: str = '(default)'
DEFAULT_OWNER_FIELD: str = 'ownerUid'
DEFAULT_PROBE_COLLECTION: str = 'budgetSettings'
DEFAULT_POLL_INTERVAL: int = 30
DEFAULT_FILENAME_PREFIX: str = 'FinanceFlow_Export'

CONFIG_SCHEMA: Dict[str, Any] = {
    'store': {
        'type': dict,
        'required': True,
        'item_schema': {
            'project_id': {'type': str, 'required': True},
            'database': {'type': str, 'required': True, 'non_empty': True},
            'owner_field': {'type': str, 'required': True, 'non_empty': True},
            'probe_collection': {'type': str, 'required': True, 'non_empty': True},
            'poll_interval': {'type': int, 'required': True, 'min': 1},
        }
    },
    'export': {
        'type': dict,
        'required': True,
        'item_schema': {
            'directory': {'type': str, 'required': True},
            'filename_prefix': {'type': str, 'required': True, 'non_empty': True},
        }
    },
}


def _validate_section(section_name: str, section: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate a config section against its item schema.

    Args:
        section_name: Name of the section, used in error messages.
        section: The section data.
        item_schema: Mapping of field names to their type and constraint specs.

    Raises:
        TypeError: If the section or one of its fields has the wrong type.
        ValueError: If a required field is missing or a constraint fails.
    """
    logging.debug(f'Validating "{section_name}" section.')
    if not isinstance(section, dict):
        msg: str = f'"{section_name}" must be a dict.'
        logging.error(msg)
        raise TypeError(msg)

    for field, specs in item_schema.items():
        if specs['required'] and field not in section:
            msg = f'"{section_name}" is missing "{field}".'
            logging.error(msg)
            raise ValueError(msg)
        if field not in section:
            continue

        value = section[field]
        # bool is an int subclass, but never a valid int setting
        if not isinstance(value, specs['type']) or (specs['type'] is int and isinstance(value, bool)):
            msg = f'"{section_name}.{field}" must be {specs["type"]}, got {type(value)}.'
            logging.error(msg)
            raise TypeError(msg)
        if specs.get('non_empty') and not value.strip():
            msg = f'"{section_name}.{field}" must not be empty.'
            logging.error(msg)
            raise ValueError(msg)
        if 'min' in specs and value < specs['min']:
            msg = f'"{section_name}.{field}" must be at least {specs["min"]}, got {value}.'
            logging.error(msg)
            raise ValueError(msg)


class ConfigPaths:
    """Manage application file paths and ensure default templates and directories exist.

    This class initializes paths for configuration templates, credentials and
    the user config file. It verifies the presence of template assets and
    prepares default configuration files by copying them into the user data
    directory.
    """

    def __init__(self) -> None:
        QtCore.QCoreApplication.setApplicationName(app_name)
        QtCore.QCoreApplication.setOrganizationName('')
        logging.debug(f'Setting application name: {app_name}')

        p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
        app_data_dir = pathlib.Path(p)
        logging.debug(f'Using app data directory: {app_data_dir}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.client_secret_template: pathlib.Path = self.template_dir / 'client_secret.json.template'
        self.config_template: pathlib.Path = self.template_dir / 'config.json.template'

        self.config_dir: pathlib.Path = app_data_dir / 'config'
        self.auth_dir: pathlib.Path = self.config_dir / 'auth'

        self.client_secret_path: pathlib.Path = self.config_dir / 'client_secret.json'
        self.config_path: pathlib.Path = self.config_dir / 'config.json'
        self.creds_path: pathlib.Path = self.auth_dir / 'creds.json'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify templates exist and prepare configuration directories and files.

        Raises:
            FileNotFoundError: If required template directory or file is missing.
        """
        logging.debug(f'Verifying required directories and templates in {self.template_dir}')
        if not self.template_dir.exists():
            msg: str = f'Missing template directory: {self.template_dir}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        if not self.client_secret_template.exists():
            msg = f'Missing client_secret template: {self.client_secret_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        if not self.config_template.exists():
            msg = f'Missing config template: {self.config_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)

        if not self.config_dir.exists():
            logging.debug(f'Creating config directory: {self.config_dir}')
            self.config_dir.mkdir(parents=True, exist_ok=True)

        if not self.auth_dir.exists():
            logging.debug(f'Creating auth directory: {self.auth_dir}')
            self.auth_dir.mkdir(parents=True, exist_ok=True)

        # Ensure valid configs exists even if we haven't yet set them up
        if not self.client_secret_path.exists():
            logging.debug(f'Copying default client_secret from template to {self.client_secret_path}')
            shutil.copy(self.client_secret_template, self.client_secret_path)
        if not self.config_path.exists():
            logging.debug(f'Copying default config from template to {self.config_path}')
            shutil.copy(self.config_template, self.config_path)

    def revert_config_to_template(self) -> None:
        """Restore config.json from the default template file.

        Raises:
            FileNotFoundError: If the config template file is missing.
        """
        logging.debug(f'Reverting config to template: {self.config_template}')
        if not self.config_template.exists():
            msg: str = f'Config template not found: {self.config_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        shutil.copy(self.config_template, self.config_path)

    def revert_client_secret_to_template(self) -> None:
        """Restore client_secret.json from the default template file.

        Raises:
            FileNotFoundError: If the client_secret template file is missing.
        """
        logging.debug(f'Reverting client_secret to template: {self.client_secret_template}')
        if not self.client_secret_template.exists():
            msg: str = f'Client_secret template not found: {self.client_secret_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        shutil.copy(self.client_secret_template, self.client_secret_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save config.json sections and client_secret.json.
    """
    required_client_secret_keys: List[str] = ['client_id', 'project_id', 'client_secret', 'auth_uri', 'token_uri']

    def __init__(self, config_path: Optional[str] = None, client_secret_path: Optional[str] = None) -> None:
        """Initialize SettingsAPI and load config and client_secret data.

        Args:
            config_path: Optional path to a custom config.json file.
            client_secret_path: Optional path to a custom client_secret.json file.
        """
        super().__init__()

        self.config_path: pathlib.Path = pathlib.Path(config_path) if config_path else self.config_path

        self.client_secret_path: pathlib.Path = (
            pathlib.Path(client_secret_path)
            if client_secret_path
            else self.client_secret_path
        )

        self.config_data: Dict[str, Any] = {}
        for k in CONFIG_SCHEMA.keys():
            self.config_data[k] = {}

        self.client_secret_data: Dict[str, Any] = {}

        self.init_data()

    @QtCore.Slot()
    def init_data(self) -> None:
        """Reload config and client_secret data, emitting config change signals."""
        self.load_config()
        self.load_client_secret()

        from ..core.signals import signals
        signals.configSectionChanged.emit('client_secret')
        for section in CONFIG_SCHEMA.keys():
            signals.configSectionChanged.emit(section)

    def load_config(self) -> Dict[str, Any]:
        """Load config.json from disk and validate against schema.

        Returns:
            The loaded config data dictionary.

        Raises:
            status.ConfigNotFoundException: If config.json file is missing.
            status.ConfigInvalidException: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading config from "{self.config_path}"')
        if not self.config_path.exists():
            raise status.ConfigNotFoundException

        try:
            with self.config_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_config_data(data=data)
            self.config_data = data
            return self.config_data
        except status.ConfigInvalidException:
            raise
        except Exception as ex:
            raise status.ConfigInvalidException(str(ex)) from ex

    def load_client_secret(self) -> Dict[str, Any]:
        """Load client_secret.json from disk and validate required OAuth fields.

        Returns:
            The loaded client secret data dictionary.

        Raises:
            status.ClientSecretNotFoundException: If client_secret.json file is missing.
            status.ClientSecretInvalidException: If JSON parsing or required fields are missing.
        """
        logging.debug(f'Loading client_secret from "{self.client_secret_path}"')
        if not self.client_secret_path.exists():
            raise status.ClientSecretNotFoundException(str(self.client_secret_path))
        try:
            with self.client_secret_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
        except (ValueError, json.JSONDecodeError) as ex:
            raise status.ClientSecretInvalidException from ex
        self.validate_client_secret(data)
        self.client_secret_data = data
        return self.client_secret_data

    def validate_client_secret(self, data=None) -> str:
        """Validate that the client configuration contains required OAuth credentials.

        Args:
            data (dict, optional): Client secret data to validate. Defaults to loaded client_secret_data.

        Returns:
            str: Section key used ('installed' or 'web').

        Raises:
            status.ClientSecretInvalidException: If no valid client_secret section exists or required fields are missing.
        """
        if data is None:
            data = self.client_secret_data

        # Prefer 'installed', then 'web'
        key = next((k for k in ('installed', 'web') if k in data), None)
        if not key:
            raise status.ClientSecretInvalidException('Missing "installed" or "web" section in client_secret.')

        logging.debug(f'Found "{key}" section in client_secret.')

        config_section: Dict[str, Any] = data[key]
        missing: List[str] = [k for k in self.required_client_secret_keys if k not in config_section]
        if missing:
            raise status.ClientSecretInvalidException(
                f'Missing required fields in the \'{key}\' section: {missing}.'
            )
        return key

    def validate_config_data(self, data: Dict[str, Any] = None) -> None:
        """Validate config data against the defined CONFIG_SCHEMA.

        Args:
            data (dict, optional): Config data to validate. Defaults to self.config_data.

        Raises:
            status.ConfigInvalidException: If a required section is missing or validation fails.
        """
        if data is None:
            data = self.config_data
        if not data:
            raise status.ConfigInvalidException('Config data is empty.')

        logging.debug('Validating config data against schema.')
        for field, specs in CONFIG_SCHEMA.items():
            if specs.get('required') and field not in data:
                raise status.ConfigInvalidException(f'Missing required field: {field}')

            if field not in data:
                continue

            try:
                _validate_section(field, data[field], specs['item_schema'])
            except (TypeError, ValueError) as ex:
                raise status.ConfigInvalidException(str(ex)) from ex

        logging.debug('Config data is valid.')

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Retrieve a copy of configuration data for a config or client_secret section.

        Args:
            section_name: Section name ('client_secret' or key from config schema).

        Returns:
            A copied dict of the requested section data.

        Raises:
            KeyError: If section_name is not in config_data.
        """
        if section_name == 'client_secret':
            return self.client_secret_data.copy()

        return self.config_data[section_name].copy()

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Replace and persist a configuration section.

        Args:
            section_name: Section to update ('client_secret' or config key).
            new_data: New data dict for the section.

        Raises:
            ValueError: If section_name is unrecognized.
            status.ConfigInvalidException: If the new section data fails validation.
        """
        from ..core.signals import signals

        if section_name == 'client_secret':
            logging.debug('Setting entire client_secret data.')
            self.validate_client_secret(new_data)
            self.client_secret_data = new_data
            self.save_section('client_secret')

            signals.configSectionChanged.emit(section_name)
            return

        if section_name not in self.config_data:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        current_section_data: Dict[str, Any] = self.config_data.get(section_name).copy()

        self.config_data[section_name] = new_data
        try:
            self.validate_config_data()
        except status.ConfigInvalidException:
            logging.error(f'Validation error on set_section("{section_name}"), rolling back.')
            self.config_data[section_name] = current_section_data
            raise

        self.save_section(section_name)
        signals.configSectionChanged.emit(section_name)

    def revert_section(self, section_name: str) -> None:
        """Revert a configuration section to its template default and save.

        Args:
            section_name: Section to revert ('client_secret' or config key).

        Raises:
            ValueError: If section_name is invalid or not present in the template.
        """
        from ..core.signals import signals

        if section_name == 'client_secret':
            logging.debug('Reverting client_secret to template.')
            self.revert_client_secret_to_template()
            self.load_client_secret()
            return

        if section_name not in self.config_data:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.config_template.open('r', encoding='utf-8') as f:
            template_data: Dict[str, Any] = json.load(f)

        if section_name not in template_data:
            msg = f'No template-based revert logic for section "{section_name}".'
            logging.error(msg)
            raise ValueError(msg)

        self.config_data[section_name] = template_data[section_name]
        self.save_section(section_name)

        signals.configSectionChanged.emit(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single configuration section to its corresponding file.

        Args:
            section_name: The section to save ('client_secret' or config key).

        Raises:
            ValueError: If section_name is not recognized.
        """
        if section_name == 'client_secret':
            logging.debug(f'Saving client_secret to "{self.client_secret_path}"')
            self.validate_client_secret(self.client_secret_data)
            with self.client_secret_path.open('w', encoding='utf-8') as f:
                json.dump(self.client_secret_data, f, indent=4, ensure_ascii=False)
            return

        if section_name not in self.config_data:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.config_path.open('r', encoding='utf-8') as f:
            original_data: Dict[str, Any] = json.load(f)

        new_data: Dict[str, Any] = original_data.copy()
        new_data[section_name] = self.config_data[section_name]

        with self.config_path.open('w', encoding='utf-8') as f:
            json.dump(new_data, f, indent=4, ensure_ascii=False)


settings: SettingsAPI = SettingsAPI()

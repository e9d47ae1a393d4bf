"""
Graphlit Python SDK - Resources

This module contains all GraphQL resource classes.
"""

from graphlit.resources.base import BaseResource, EntityResource
from graphlit.resources.project import ProjectResource
from graphlit.resources.alerts import AlertsResource
from graphlit.resources.collections import CollectionsResource
from graphlit.resources.contents import ContentsResource
from graphlit.resources.conversations import ConversationsResource
from graphlit.resources.feeds import FeedsResource
from graphlit.resources.specifications import SpecificationsResource
from graphlit.resources.workflows import WorkflowsResource
from graphlit.resources.users import UsersResource
from graphlit.resources.web import NotificationsResource, WebResource
from graphlit.resources.observables import (
    CategoriesResource,
    EventsResource,
    LabelsResource,
    MedicalConditionsResource,
    MedicalContraindicationsResource,
    MedicalDevicesResource,
    MedicalDrugClassesResource,
    MedicalDrugsResource,
    MedicalGuidelinesResource,
    MedicalIndicationsResource,
    MedicalProceduresResource,
    MedicalStudiesResource,
    MedicalTestsResource,
    MedicalTherapiesResource,
    OrganizationsResource,
    PersonsResource,
    PlacesResource,
    ProductsResource,
    ReposResource,
    SoftwaresResource,
)

__all__ = [
    "BaseResource",
    "EntityResource",
    "ProjectResource",
    "AlertsResource",
    "CollectionsResource",
    "ContentsResource",
    "ConversationsResource",
    "FeedsResource",
    "SpecificationsResource",
    "WorkflowsResource",
    "UsersResource",
    "WebResource",
    "NotificationsResource",
    "CategoriesResource",
    "LabelsResource",
    "PersonsResource",
    "OrganizationsResource",
    "PlacesResource",
    "EventsResource",
    "ProductsResource",
    "ReposResource",
    "SoftwaresResource",
    "MedicalConditionsResource",
    "MedicalGuidelinesResource",
    "MedicalDrugsResource",
    "MedicalIndicationsResource",
    "MedicalContraindicationsResource",
    "MedicalTestsResource",
    "MedicalDevicesResource",
    "MedicalProceduresResource",
    "MedicalStudiesResource",
    "MedicalDrugClassesResource",
    "MedicalTherapiesResource",
]

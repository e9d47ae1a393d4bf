"""
Graphlit Python SDK - Observable Resources

Observables are the knowledge-graph entities extracted from content:
people, organizations, places, events, products and so on, plus the
medical entity families. Every family shares the same CRUD surface, so
each resource only declares its GraphQL names and selection set.
"""

from __future__ import annotations

from graphlit.resources.base import EntityResource


OBSERVABLE_FIELDS = """
    id
    name
    alternateNames
    creationDate
    modifiedDate
    owner { id }
    state
    uri
    description
    identifier
    thing
    feeds { id name }
"""


class ObservableResource(EntityResource):
    """Base for observable entity families."""

    fields = OBSERVABLE_FIELDS


class CategoriesResource(ObservableResource):
    """Resource for managing categories."""

    type_name = "Category"
    plural = "Categories"
    fields = "id name description creationDate state"


class LabelsResource(ObservableResource):
    """Resource for managing labels."""

    type_name = "Label"
    plural = "Labels"
    fields = "id name description creationDate state"


class PersonsResource(ObservableResource):
    """Resource for managing persons."""

    type_name = "Person"
    plural = "Persons"
    fields = OBSERVABLE_FIELDS + """
    email
    givenName
    familyName
    phoneNumber
    birthDate
    title
    occupation
    education
    """


class OrganizationsResource(ObservableResource):
    """Resource for managing organizations."""

    type_name = "Organization"
    plural = "Organizations"
    fields = OBSERVABLE_FIELDS + """
    foundingDate
    email
    telephone
    legalName
    industries
    revenue
    revenueCurrency
    investment
    investmentCurrency
    """


class PlacesResource(ObservableResource):
    """Resource for managing places."""

    type_name = "Place"
    plural = "Places"
    fields = OBSERVABLE_FIELDS + """
    address { streetAddress city region country postalCode }
    location { latitude longitude }
    """


class EventsResource(ObservableResource):
    """Resource for managing events."""

    type_name = "Event"
    plural = "Events"
    fields = OBSERVABLE_FIELDS + """
    startDate
    endDate
    availabilityStartDate
    availabilityEndDate
    price
    minPrice
    maxPrice
    priceCurrency
    isAccessibleForFree
    typicalAgeRange
    """


class ProductsResource(ObservableResource):
    """Resource for managing products."""

    type_name = "Product"
    plural = "Products"
    fields = OBSERVABLE_FIELDS + """
    manufacturer
    model
    brand
    upc
    sku
    releaseDate
    productionDate
    """


class ReposResource(ObservableResource):
    """Resource for managing code repositories."""

    type_name = "Repo"
    plural = "Repos"


class SoftwaresResource(ObservableResource):
    """Resource for managing software."""

    type_name = "Software"
    plural = "Softwares"
    fields = OBSERVABLE_FIELDS + """
    releaseDate
    developer
    """


# =============================================================================
# Medical entities
# =============================================================================

class MedicalConditionsResource(ObservableResource):
    type_name = "MedicalCondition"
    plural = "MedicalConditions"


class MedicalGuidelinesResource(ObservableResource):
    type_name = "MedicalGuideline"
    plural = "MedicalGuidelines"


class MedicalDrugsResource(ObservableResource):
    type_name = "MedicalDrug"
    plural = "MedicalDrugs"


class MedicalIndicationsResource(ObservableResource):
    type_name = "MedicalIndication"
    plural = "MedicalIndications"


class MedicalContraindicationsResource(ObservableResource):
    type_name = "MedicalContraindication"
    plural = "MedicalContraindications"


class MedicalTestsResource(ObservableResource):
    type_name = "MedicalTest"
    plural = "MedicalTests"


class MedicalDevicesResource(ObservableResource):
    type_name = "MedicalDevice"
    plural = "MedicalDevices"


class MedicalProceduresResource(ObservableResource):
    type_name = "MedicalProcedure"
    plural = "MedicalProcedures"


class MedicalStudiesResource(ObservableResource):
    type_name = "MedicalStudy"
    plural = "MedicalStudies"


class MedicalDrugClassesResource(ObservableResource):
    type_name = "MedicalDrugClass"
    plural = "MedicalDrugClasses"


class MedicalTherapiesResource(ObservableResource):
    type_name = "MedicalTherapy"
    plural = "MedicalTherapies"

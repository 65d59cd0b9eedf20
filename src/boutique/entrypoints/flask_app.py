"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle se contente de
convertir les requêtes HTTP en commands, les envoie au
message bus, et convertit les résultats en réponses HTTP.

Chaque type d'erreur devient un code HTTP distinct :
404 pour une ressource introuvable, 409 pour un état invalide,
400 pour une donnée invalide, 503 quand le catalogue ne répond pas.
Le corps d'une erreur est toujours {"message": ...}.

L'API ne contient aucune logique métier.
"""

from __future__ import annotations

import atexit
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import Flask, jsonify, request
from sqlalchemy.orm.exc import StaleDataError

from boutique import config
from boutique.domain import commands, model
from boutique.service_layer import bootstrap, handlers

logging.basicConfig(
    level=config.get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = Flask(__name__)
bus = bootstrap.bootstrap()
worker = bootstrap.démarrer_worker_email(bus)
atexit.register(worker.arrêter)


class RequêteInvalide(ValueError):
    """Corps de requête absent ou mal formé."""
    pass


INTROUVABLE = (
    handlers.ClientInconnu,
    handlers.ProduitInconnu,
    handlers.CommandeIntrouvable,
    handlers.LigneIntrouvable,
)

INVALIDE = (
    RequêteInvalide,
    model.QuantitéInvalide,
    handlers.StatutInconnu,
    handlers.PrixInvalide,
)


def introuvable(e: Exception):
    return jsonify({"message": str(e)}), 404


def donnée_invalide(e: ValueError):
    return jsonify({"message": str(e)}), 400


for exception in INTROUVABLE:
    app.register_error_handler(exception, introuvable)

for exception in INVALIDE:
    app.register_error_handler(exception, donnée_invalide)


@app.errorhandler(model.ÉtatInvalide)
def état_invalide(e: model.ÉtatInvalide):
    return jsonify({"message": str(e)}), 409


@app.errorhandler(StaleDataError)
def conflit_de_concurrence(e: StaleDataError):
    return jsonify({"message": "La commande a été modifiée entre-temps, réessayez"}), 409


@app.errorhandler(handlers.CatalogueInjoignable)
def catalogue_injoignable(e: handlers.CatalogueInjoignable):
    return jsonify({"message": str(e)}), 503


# --- Lecture du corps JSON ---


def _corps() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise RequêteInvalide("Un objet JSON est attendu dans le corps de la requête")
    return data


def _champ(data: dict, nom: str) -> Any:
    if data.get(nom) is None:
        raise RequêteInvalide(f"Champ obligatoire manquant : {nom}")
    return data[nom]


def _entier(data: dict, nom: str) -> int:
    valeur = _champ(data, nom)
    if isinstance(valeur, bool) or not isinstance(valeur, int):
        raise RequêteInvalide(f"Le champ {nom} doit être un entier : {valeur!r}")
    return valeur


def _date(valeur: Any) -> date:
    try:
        return date.fromisoformat(valeur)
    except (TypeError, ValueError):
        raise RequêteInvalide(f"Date invalide (AAAA-MM-JJ attendu) : {valeur!r}") from None


# --- Routes ---


@app.route("/clients", methods=["POST"])
def add_client_endpoint():
    """
    POST /clients
    Body JSON : { nom, email }
    """
    data = _corps()
    cmd = commands.CréerClient(nom=_champ(data, "nom"), email=_champ(data, "email"))
    [id_client] = bus.handle(cmd)
    return jsonify({"id": id_client}), 201


@app.route("/produits", methods=["POST"])
def add_produit_endpoint():
    """
    POST /produits
    Body JSON : { nom, prix }
    """
    data = _corps()
    try:
        prix = Decimal(str(_champ(data, "prix")))
    except InvalidOperation:
        raise RequêteInvalide(f"Prix invalide : {data['prix']}") from None
    [id_produit] = bus.handle(commands.CréerProduit(nom=_champ(data, "nom"), prix=prix))
    return jsonify({"id": id_produit}), 201


@app.route("/commandes", methods=["POST"])
def créer_commande_endpoint():
    """
    POST /commandes
    Body JSON : { id_client, lignes: [{ id_produit, quantite }], date_commande? }

    Le prix n'est jamais accepté depuis le client : il est lu dans le catalogue.
    """
    data = _corps()
    lignes = data.get("lignes", [])
    if not isinstance(lignes, list) or not all(isinstance(l, dict) for l in lignes):
        raise RequêteInvalide("lignes doit être une liste d'objets { id_produit, quantite }")
    date_commande = data.get("date_commande")
    cmd = commands.CréerCommande(
        id_client=_entier(data, "id_client"),
        lignes=tuple(
            (_entier(ligne, "id_produit"), _champ(ligne, "quantite")) for ligne in lignes
        ),
        date_commande=_date(date_commande) if date_commande is not None else None,
    )
    [id_commande] = bus.handle(cmd)
    return jsonify({"id": id_commande}), 201


@app.route("/commandes/<int:id_commande>/lignes", methods=["POST"])
def ajouter_ligne_endpoint(id_commande: int):
    """
    POST /commandes/<id>/lignes
    Body JSON : { id_produit, quantite }
    """
    data = _corps()
    cmd = commands.AjouterLigne(
        id_commande=id_commande,
        id_produit=_entier(data, "id_produit"),
        quantité=_champ(data, "quantite"),
    )
    [id_ligne] = bus.handle(cmd)
    return jsonify({"id_ligne": id_ligne}), 201


@app.route("/commandes/<int:id_commande>/lignes/<int:id_ligne>", methods=["DELETE"])
def retirer_ligne_endpoint(id_commande: int, id_ligne: int):
    bus.handle(commands.RetirerLigne(id_commande=id_commande, id_ligne=id_ligne))
    return "", 204


@app.route("/commandes/<int:id_commande>/confirmation", methods=["POST"])
def confirmer_endpoint(id_commande: int):
    """
    POST /commandes/<id>/confirmation

    L'email de confirmation est envoyé en arrière-plan, et un échec
    du reporting est loggé sans apparaître dans la réponse.
    """
    bus.handle(commands.ConfirmerCommande(id_commande=id_commande))
    return "OK", 200


@app.route("/commandes/<int:id_commande>/statut", methods=["POST"])
def changer_statut_endpoint(id_commande: int):
    """
    POST /commandes/<id>/statut
    Body JSON : { statut }
    """
    data = _corps()
    bus.handle(
        commands.ChangerStatutCommande(id_commande=id_commande, statut=_champ(data, "statut"))
    )
    return "OK", 200


@app.route("/commandes/<int:id_commande>", methods=["GET"])
def commande_view_endpoint(id_commande: int):
    """
    GET /commandes/<id>

    Retourne la commande et ses lignes (lecture CQRS).
    """
    from boutique.views import views

    result = views.commande(id_commande, bus.uow)
    if result is None:
        return jsonify({"message": f"Commande introuvable : {id_commande}"}), 404
    return jsonify(result), 200
